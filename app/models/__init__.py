from app.domain.patients.models import Patient, PatientDiagnosis
from app.domain.lab.models import LabOrder, LabResult
from app.domain.beds.models import Unit, Bed, BedAssignment, BedTurnover
from app.domain.discharge.models import (
    Admission, VitalSign, DischargePlanningItem, EquipmentOrder,
    DischargeBarrier, DischargePrediction
)
from app.domain.features.models import FeatureFlag
from app.domain.audit.models import AuditLog
