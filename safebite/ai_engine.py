# safebite/ai_engine.py
import os
import base64
import time
from openai import AsyncOpenAI
from dotenv import load_dotenv

load_dotenv()

OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")
AI_BASE_URL = os.getenv("AI_BASE_URL", "https://openrouter.ai/api/v1")
MODEL_ID = os.getenv("MODEL_ID", "google/gemini-2.5-flash")
SITE_URL = os.getenv("SITE_URL", "http://localhost:3000")
APP_NAME = os.getenv("APP_NAME", "SafeBite")

_client = None

def get_client():
    global _client
    if _client is None:
        _client = AsyncOpenAI(
            base_url=AI_BASE_URL,
            api_key=OPENROUTER_API_KEY,
            default_headers={
                "HTTP-Referer": SITE_URL,
                "X-Title": APP_NAME,
            }
        )
    return _client

BRAND_SCHEMA_DEFINITION = """
{
  "brandName": "...",
  "productType": "...",
  "manufacturer": "...",
  "keyIngredients": ["..."],
  "expiryDate": "...",
  "warnings": ["..."],
  "confidenceScore": 0-100,
  "localizedAdvice": "...",
  "promotionalNote": "..."
}
"""

MEAL_SCHEMA_DEFINITION = """
{
  "risk_level": "CRITICAL" or "MODERATE" or "SAFE",
  "risk_score": 1-10 (10 being highest risk),
  "localized_visible_ingredients": ["Local name (English name) (RISK/ALLERGY/SAFE)"],
  "hidden_ingredients": ["possible hidden ingredients"],
  "allergy_risk_summary": "short sentence",
  "health_risk_summary": "short sentence",
  "expert_take_paragraph": "2-3 friendly, localized sentences",
  "safe_swaps": ["localized & affordable suggestion", "..."],
  "localized_actionable_fixes": ["most important immediate fix", "second quick fix"],
  "health_consumption_advice": ["2-3 specific tips for eating THIS meal"]
}
"""

def build_brand_prompt() -> str:
    return f"""You are a highly specialized African beverage expert. Analyze the image of a drink bottle.
    Identify brand, product type, manufacturer, key ingredients, expiry date and warnings.
    Provide friendly localized advice and a promotional note.
    If unsure about any field, give your best guess. Do not leave it blank or "Unknown".

    Return ONLY valid JSON matching this schema, with no explanations or extra text:
    {BRAND_SCHEMA_DEFINITION}
    """

def _joined(items) -> str:
    cleaned = [str(i).strip() for i in (items or []) if str(i).strip()]
    return ", ".join(cleaned) if cleaned else "None reported"

def build_meal_prompt(allergies=None, health_conditions=None) -> str:
    allergy_list = _joined(allergies)
    condition_list = _joined(health_conditions)

    return f"""You are a culturally sensitive food safety expert for the SafeBite African community.
    Your goal is actionable, localized, context-aware advice about the meal in the image.

    CULTURAL CONTEXT:
    * Use African food names first, then the English name in parentheses (e.g. 'Wali (Rice)', 'Sukuma Wiki (Collard Greens)').
    * Prefer local, affordable swaps: Nduma, Ngwaci, Minji, Ndengu, Omena, Tilapia, Matoke, Kachumbari, Githeri.
    * Apply the African Plate Model: heavy starch portions (Ugali, Wali) are risks, protein (Nyama) and greens (Mboga) mitigate them.

    RISK LEVELS (never answer "SAFE"/"NOT SAFE" alone):
    1. CRITICAL: a direct allergen is clearly visible, or the meal is an extreme health risk for this user. STOP.
    2. MODERATE: suboptimal portioning (too much starch or oil) or moderate health risk. ADJUST.
    3. SAFE: well balanced, no risk. ENJOY.

    'health_consumption_advice' must target the user's health conditions ({condition_list}).

    User Allergies: {allergy_list}
    User Health Conditions: {condition_list}

    Return ONLY valid JSON with exactly these keys:
    {MEAL_SCHEMA_DEFINITION}
    """

def build_messages(prompt: str, image_bytes: bytes, mime_type: str = "image/jpeg"):
    base64_image = base64.b64encode(image_bytes).decode('utf-8')
    image_url = f"data:{mime_type or 'image/jpeg'};base64,{base64_image}"
    return [
        {"role": "system", "content": prompt},
        {"role": "user", "content": [{"type": "image_url", "image_url": {"url": image_url}}]}
    ]

async def analyze_brand_image(image_bytes: bytes, mime_type: str = "image/jpeg"):
    return await _submit(build_brand_prompt(), image_bytes, mime_type, label="brand")

async def analyze_meal_image(image_bytes: bytes, mime_type: str = "image/jpeg", profile: dict = None):
    profile = profile or {}
    prompt = build_meal_prompt(profile.get("allergicFoods"), profile.get("healthConditions"))
    return await _submit(prompt, image_bytes, mime_type, label="meal")

async def _submit(prompt: str, image_bytes: bytes, mime_type: str, label: str):
    """
    Sends one multimodal request and returns the raw response untouched.
    Errors from the SDK propagate to the caller; there is no retry here.
    """
    print(f"🚀 Sending {label} request to {AI_BASE_URL} ({MODEL_ID})... [{mime_type}, {len(image_bytes)}b]")
    start_time = time.time()

    response = await get_client().chat.completions.create(
        model=MODEL_ID,
        messages=build_messages(prompt, image_bytes, mime_type),
        response_format={"type": "json_object"},
        temperature=0.4,
        max_tokens=1500,
        extra_body={"include_usage": True}
    )

    latency = time.time() - start_time
    raw = response.model_dump() if hasattr(response, 'model_dump') else response.__dict__
    return {
        "response": raw,
        "cost": _extract_cost(response),
        "latency": latency,
    }

def _extract_cost(response):
    try:
        if hasattr(response, 'usage') and response.usage:
            usage_dict = response.usage.model_dump() if hasattr(response.usage, 'model_dump') else response.usage.__dict__
            return float(usage_dict.get('cost') or 0.0)
    except (TypeError, ValueError) as e:
        print(f"⚠️ Could not extract cost: {e}")
    return 0.0
