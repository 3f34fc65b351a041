import asyncio
import os
import sys
import uuid

# Add project root to python path
sys.path.append(os.getcwd())

from app.core.permissions import Permissions
from app.core.tenant import RequestContext
from app.infrastructure.database import AsyncSessionLocal, init_db
from app.domain.beds.isolation import IsolationService
from app.domain.beds.models import Unit, Bed, BedStatus
from app.domain.beds.scoring import BedRequirements
from app.domain.beds.service import BedAssignmentService
from app.domain.beds.status_tracker import BedStatusTracker
from app.domain.discharge.models import Admission
from app.domain.discharge.service import DischargeReadinessPredictor
from app.domain.lab.models import LabOrder, LabOrderStatus, LabResult, LabResultStatus
from app.domain.patients.models import Patient, IsolationType


async def run_workflow():
    print("Initializing database...")
    await init_db()

    context = RequestContext(
        tenant_id=f"verify-{uuid.uuid4().hex[:6]}",
        token="verify",
        user_id="charge-nurse",
        permissions=[Permissions.SYSTEM_ADMIN],
    )

    async with AsyncSessionLocal() as db:
        try:
            print("\n--- 1. Setup Data ---")
            unit = Unit(tenant_id=context.tenant_id, name="4 West", unit_type="med_surg", floor=4)
            db.add(unit)
            await db.flush()

            for number in ("1", "2", "3"):
                db.add(Bed(tenant_id=context.tenant_id, unit_id=unit.id, bed_number=number, has_telemetry=True))
            db.add(Bed(
                tenant_id=context.tenant_id,
                unit_id=unit.id,
                bed_number="4",
                isolation_capable=True,
                isolation_type=IsolationType.CONTACT,
                distance_to_nurses_station=10
            ))

            patient = Patient(
                tenant_id=context.tenant_id,
                medical_record_number=f"MRN-{uuid.uuid4().hex[:6]}".upper(),
                first_name="John",
                last_name="Doe",
            )
            db.add(patient)
            await db.flush()

            order = LabOrder(
                tenant_id=context.tenant_id,
                patient_id=patient.id,
                test_name="Nares culture",
                status=LabOrderStatus.COMPLETED
            )
            db.add(order)
            await db.flush()
            db.add(LabResult(
                tenant_id=context.tenant_id,
                order_id=order.id,
                patient_id=patient.id,
                organism="MRSA",
                result_status=LabResultStatus.POSITIVE
            ))

            admission = Admission(tenant_id=context.tenant_id, patient_id=patient.id)
            db.add(admission)
            await db.commit()
            print(f"Created unit {unit.name} with 4 beds and patient {patient.medical_record_number}")

            print("\n--- 2. Isolation Check ---")
            requirement = await IsolationService(db, context).check_isolation(patient.id)
            print(f"Isolation: {requirement.isolation_type.value if requirement.isolation_type else 'none'}")
            print(f"Reasons: {'; '.join(requirement.reasons)}")

            print("\n--- 3. Recommend Beds ---")
            placement = BedAssignmentService(db, context)
            result = await placement.recommend_beds(patient.id, BedRequirements(proximity_to_nurses_station=True))
            for rec in result.recommendations:
                print(f"Bed {rec.bed_number}: score {rec.score} ({rec.confidence}) - {rec.reasoning}")
            print(f"{len(result.excluded)} of {result.total_available_beds} available beds excluded")

            print("\n--- 4. Assign Bed ---")
            best = result.recommendations[0]
            assignment = await placement.assign_bed(patient.id, best.bed_id, "Top recommendation")
            print(f"Assigned bed {best.bed_number} (assignment {assignment.id})")

            print("\n--- 5. Discharge Readiness ---")
            prediction = await DischargeReadinessPredictor(db, context).predict(patient.id, admission.id)
            print(
                f"Readiness {prediction['overall_readiness_score']} "
                f"(medical {prediction['medical_readiness_score']}, social {prediction['social_readiness_score']})"
            )
            for barrier in prediction["barriers"]:
                print(f"  [{barrier['severity']}] {barrier['description']}")

            print("\n--- 6. Release and Clean ---")
            await placement.release_bed(assignment.id)
            tracker = BedStatusTracker(db, context)
            queue = await tracker.get_cleaning_priority_queue()
            for item in queue["beds"]:
                print(f"Bed {item['bed_number']} needs {item['cleaning_type']} clean (target {item['target_minutes']} min)")

            bed = await tracker.update_bed_status(best.bed_id, BedStatus.AVAILABLE)
            print(f"Bed {bed.bed_number} is {bed.status.value}")

            metrics = await tracker.get_turnover_metrics()
            print(f"Turnovers recorded: {metrics['overall']['total_turnovers']}")

            print("\n✅ WORKFLOW COMPLETED SUCCESSFULLY!")

        except Exception as e:
            print(f"\n❌ WORKFLOW FAILED: {str(e)}")
            import traceback
            traceback.print_exc()

if __name__ == "__main__":
    asyncio.run(run_workflow())
