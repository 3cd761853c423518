# safebite/schemas.py
from typing import Annotated, Any, Dict, List, Literal, NamedTuple, Optional, Tuple, Type, Union
from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr

# --- Brand scanner ---

INGREDIENT_UNAVAILABLE = "ingredient_unavailable"

# Whole numbers stay ints so a stored result reads back exactly as the model sent it
Score = Union[Annotated[StrictInt, Field(ge=0, le=100)], Annotated[StrictFloat, Field(ge=0, le=100)]]

class BrandAnalysis(BaseModel):
    brandName: StrictStr = Field(min_length=1)
    productType: StrictStr = Field(min_length=1)
    manufacturer: Optional[StrictStr] = None
    keyIngredients: List[StrictStr] = Field(min_length=1)
    expiryDate: Optional[StrictStr] = None
    warnings: Optional[List[StrictStr]] = None
    confidenceScore: Score
    localizedAdvice: Optional[StrictStr] = None
    promotionalNote: Optional[StrictStr] = None

BRAND_DEFAULTS = {
    "brandName": "",
    "productType": "",
    "manufacturer": "",
    "keyIngredients": [INGREDIENT_UNAVAILABLE],
    "expiryDate": "",
    "warnings": [],
    "confidenceScore": 0,
    "localizedAdvice": "",
    "promotionalNote": "",
}

# --- Meal safety scanner ---

class MealAnalysis(BaseModel):
    risk_level: Literal["CRITICAL", "MODERATE", "SAFE"]
    risk_score: StrictInt = Field(ge=1, le=10)
    localized_visible_ingredients: Optional[List[StrictStr]] = None
    hidden_ingredients: Optional[List[StrictStr]] = None
    allergy_risk_summary: Optional[StrictStr] = None
    health_risk_summary: Optional[StrictStr] = None
    expert_take_paragraph: Optional[StrictStr] = None
    safe_swaps: Optional[List[StrictStr]] = None
    localized_actionable_fixes: Optional[List[StrictStr]] = None
    health_consumption_advice: Optional[List[StrictStr]] = None

# A failed meal analysis defaults to the highest risk tier
MEAL_DEFAULTS = {
    "risk_level": "CRITICAL",
    "risk_score": 10,
    "localized_visible_ingredients": [],
    "hidden_ingredients": [],
    "allergy_risk_summary": "Hakuna hatari (No specific allergy risks detected).",
    "health_risk_summary": "Hakuna hatari kubwa (No major health risks noted).",
    "expert_take_paragraph": "Inaonekana nzuri! (Looks good!) Here's what we think about your meal.",
    "safe_swaps": ["Jaribu mlo mwepesi (Try a lighter alternative next time)."],
    "localized_actionable_fixes": ["No immediate action needed."],
    "health_consumption_advice": ["No specific consumption advice available."],
}

class ResultSchema(NamedTuple):
    """Everything the normalizer needs to know about one kind of analysis."""
    name: str
    model: Type[BaseModel]
    defaults: Dict[str, Any]
    # keys that identify an already-structured payload inside raw content
    markers: Tuple[str, ...]

BRAND_SCHEMA = ResultSchema(
    name="brand",
    model=BrandAnalysis,
    defaults=BRAND_DEFAULTS,
    markers=("brandName", "productType", "keyIngredients"),
)

MEAL_SCHEMA = ResultSchema(
    name="meal",
    model=MealAnalysis,
    defaults=MEAL_DEFAULTS,
    markers=("risk_level", "risk_score", "localized_visible_ingredients"),
)

# --- Profiles ---

class ProfileIn(BaseModel):
    name: Optional[str] = None
    allergicFoods: List[str] = Field(default_factory=list)
    dislikedFoods: List[str] = Field(default_factory=list)
    preferredFoods: List[str] = Field(default_factory=list)
    dietType: Optional[str] = None
    healthConditions: List[str] = Field(default_factory=list)
