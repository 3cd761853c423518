# safebite/main.py
import os
import traceback
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, UploadFile, Form, Depends, File, HTTPException, Response, Body
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlmodel import Session
from .database import init_db, get_session
from .models import UserProfile
from .orchestrator import (
    UserNotFound,
    handle_meal_scan,
    handle_brand_scan,
    create_profile,
    profile_to_dict,
    get_scan_history,
)
from .schemas import ProfileIn
from .storage import load_image
from .uploads import staged_upload

load_dotenv()

# Stack traces in 500 bodies are for debugging only
EXPOSE_ERROR_DETAILS = os.getenv("EXPOSE_ERROR_DETAILS", "false").lower() in ("1", "true", "yes")

app = FastAPI(title="SafeBite")

# The web client calls the API directly from the browser
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.on_event("startup")
def on_startup():
    init_db()

def _error(status_code: int, message: str):
    return JSONResponse(status_code=status_code, content={"error": True, "message": message})

def _server_error(e: Exception):
    content = {"error": True, "message": str(e) or type(e).__name__}
    if EXPOSE_ERROR_DETAILS:
        content["stack"] = traceback.format_exc()
        content["details"] = {"type": type(e).__name__, "args": [str(a) for a in e.args]}
    return JSONResponse(status_code=500, content=content)

async def _scan(handler, user_id: str, image: UploadFile, session: Session, label: str):
    if not user_id or not user_id.strip():
        return _error(400, "User ID is required")
    if image is None or not image.filename:
        return _error(400, "No image uploaded")

    try:
        data = await image.read()
        with staged_upload(user_id, image.filename, image.content_type, data) as request:
            return await handler(session, request)
    except UserNotFound:
        return _error(404, "User profile not found")
    except Exception as e:
        print(f"❌ Error in {label} route: {e}")
        traceback.print_exc()
        return _server_error(e)

@app.get("/")
def root():
    return {"message": "SafeBite backend running"}

@app.post("/api/scan")
async def scan_endpoint(
    image: UploadFile = File(None),
    userId: str = Form(None),
    session: Session = Depends(get_session)
):
    return await _scan(handle_meal_scan, userId, image, session, "scan")

@app.post("/api/scan-brand")
async def scan_brand_endpoint(
    image: UploadFile = File(None),
    userId: str = Form(None),
    session: Session = Depends(get_session)
):
    return await _scan(handle_brand_scan, userId, image, session, "brand scan")

@app.post("/api/profile")
def create_profile_endpoint(payload: dict = Body(...), session: Session = Depends(get_session)):
    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        return JSONResponse(status_code=400, content={"error": "Name is required"})

    try:
        data = ProfileIn.model_validate(payload)
    except ValidationError as e:
        details = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        return JSONResponse(status_code=400, content={"error": "Invalid profile", "details": details})

    try:
        profile = create_profile(session, data)
    except Exception as e:
        print(f"❌ Error saving profile: {e}")
        traceback.print_exc()
        session.rollback()
        return JSONResponse(status_code=500, content={"error": "Error saving profile"})

    return {"status": "Profile saved", "profileId": profile.id, "name": profile.name}

@app.get("/api/profile/{profile_id}")
def get_profile_endpoint(profile_id: str, session: Session = Depends(get_session)):
    profile = session.get(UserProfile, profile_id)
    if not profile:
        return JSONResponse(status_code=404, content={"error": "No profile found for this user"})
    return profile_to_dict(profile)

@app.get("/api/users/{user_id}/scans")
def scan_history_endpoint(user_id: str, session: Session = Depends(get_session)):
    try:
        return get_scan_history(session, user_id)
    except UserNotFound:
        return _error(404, "User profile not found")

@app.get("/api/image/{object_name:path}")
def get_image_endpoint(object_name: str, session: Session = Depends(get_session)):
    image_record = load_image(session, object_name)
    if not image_record:
        raise HTTPException(status_code=404, detail="Image not found")
    return Response(content=image_record.data, media_type=image_record.mime_type)

def run():
    uvicorn.run(
        "safebite.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", 8080)),
    )

if __name__ == "__main__":
    run()
