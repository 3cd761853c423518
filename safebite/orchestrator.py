# safebite/orchestrator.py
import json
import traceback
from sqlmodel import Session, select
from .models import UserProfile, Scan, utc_now
from .schemas import BRAND_SCHEMA, MEAL_SCHEMA, ProfileIn, ResultSchema
from .ai_engine import analyze_brand_image, analyze_meal_image
from .normalizer import normalize_response, failure_result
from .storage import save_scan_image
from .uploads import ScanRequest

class UserNotFound(Exception):
    pass

def require_user(session: Session, user_id: str) -> UserProfile:
    user = session.get(UserProfile, user_id)
    if not user:
        raise UserNotFound(user_id)
    return user

async def handle_meal_scan(session: Session, request: ScanRequest):
    user = require_user(session, request.user_id)
    profile = {
        "allergicFoods": list(user.allergic_foods or []),
        "healthConditions": list(user.health_conditions or []),
    }

    async def analyze(image_bytes):
        return await analyze_meal_image(image_bytes, request.mime_type, profile)

    return await _run_scan(session, user, request, MEAL_SCHEMA, analyze)

async def handle_brand_scan(session: Session, request: ScanRequest):
    user = require_user(session, request.user_id)

    async def analyze(image_bytes):
        return await analyze_brand_image(image_bytes, request.mime_type)

    return await _run_scan(session, user, request, BRAND_SCHEMA, analyze)

async def _run_scan(session: Session, user: UserProfile, request: ScanRequest, schema: ResultSchema, analyze):
    print(f"\n📨 [NEW SCAN] User: {user.id} | Kind: {schema.name} | File: {request.filename} ({request.mime_type})")

    # 1. Blob
    image_bytes = request.read_bytes()
    image_url = save_scan_image(session, user.id, request.filename, image_bytes, request.mime_type)

    # 2. Pending record
    scan = Scan(user_id=user.id, kind=schema.name, image_url=image_url, status="pending")
    session.add(scan)
    session.commit()
    session.refresh(scan)
    scan_id = scan.id

    # 3. Model call + normalization
    latency = None
    cost = None
    try:
        call = await analyze(image_bytes)
        latency = call.get("latency")
        cost = call.get("cost")
        ai_result = normalize_response(call.get("response"), schema)
    except Exception as e:
        print(f"❌ {schema.name} analysis error: {e}")
        traceback.print_exc()
        ai_result = failure_result(schema, str(e) or type(e).__name__)

    print(f"   🤖 AI: {json.dumps(ai_result, indent=2)}")

    # 4. Result persistence never fails the request
    _record_result(session, scan, ai_result, latency, cost)

    return {
        "status": "AI analysis failed" if ai_result["error"] else "Scan analyzed",
        "scanId": scan_id,
        "imageUrl": image_url,
        "aiResult": ai_result,
    }

def _record_result(session: Session, scan: Scan, ai_result: dict, latency, cost):
    try:
        scan.status = "failed" if ai_result["error"] else "completed"
        scan.result = ai_result
        scan.model_latency = latency
        scan.model_cost = cost
        session.add(scan)
        session.commit()
    except Exception as e:
        print(f"❌ Scan update failed for {scan.id}: {e}")
        session.rollback()

def create_profile(session: Session, data: ProfileIn) -> UserProfile:
    now = utc_now()
    profile = UserProfile(
        name=data.name.strip(),
        allergic_foods=data.allergicFoods,
        disliked_foods=data.dislikedFoods,
        preferred_foods=data.preferredFoods,
        diet_type=data.dietType,
        health_conditions=data.healthConditions,
        created_at=now,
        updated_at=now,
    )
    session.add(profile)
    session.commit()
    session.refresh(profile)
    print(f"👤 Profile saved: {profile.id} ({profile.name})")
    return profile

def profile_to_dict(profile: UserProfile) -> dict:
    return {
        "profileId": profile.id,
        "name": profile.name,
        "allergicFoods": profile.allergic_foods or [],
        "dislikedFoods": profile.disliked_foods or [],
        "preferredFoods": profile.preferred_foods or [],
        "dietType": profile.diet_type,
        "healthConditions": profile.health_conditions or [],
        "createdAt": profile.created_at.isoformat(),
        "updatedAt": profile.updated_at.isoformat(),
    }

def get_scan_history(session: Session, user_id: str):
    user = require_user(session, user_id)
    scans = session.exec(select(Scan).where(Scan.user_id == user.id).order_by(Scan.created_at.desc())).all()
    return [{
        "scanId": scan.id,
        "kind": scan.kind,
        "imageUrl": scan.image_url,
        "createdAt": scan.created_at.isoformat(),
        "status": scan.status,
        "result": scan.result,
    } for scan in scans]
