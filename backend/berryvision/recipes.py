from typing import Literal

from pydantic import BaseModel, Field


class TreatmentPlan(BaseModel):
    products: list[str]
    dosage: str
    application_method: str
    frequency: str
    waiting_period_days: int


class Recipe(BaseModel):
    id: str
    name: str
    problem: Literal["disease", "pest"]
    problem_name: str
    severity: Literal["low", "medium", "high"]
    crop_types: list[str]
    treatment: TreatmentPlan
    prevention: list[str] = Field(default_factory=list)
    notes: str = ""


RECIPES: list[Recipe] = [
    Recipe(
        id="1",
        name="Control de Áfidos en Arándanos",
        problem="pest",
        problem_name="Aphids",
        severity="medium",
        crop_types=["blueberry"],
        treatment=TreatmentPlan(
            products=["Jabón potásico", "Aceite de neem"],
            dosage="10-15 ml/L de agua",
            application_method="Aspersión foliar completa",
            frequency="Cada 7-10 días hasta control",
            waiting_period_days=3,
        ),
        prevention=[
            "Eliminar malas hierbas alrededor del cultivo",
            "Fomentar enemigos naturales (mariquitas, crisopas)",
            "Evitar exceso de nitrógeno en fertilización",
            "Monitoreo semanal de colonias",
        ],
        notes="Aplicar preferentemente al atardecer. Repetir si llueve dentro de 24h.",
    ),
    Recipe(
        id="2",
        name="Control de Mildiu en Arándanos",
        problem="disease",
        problem_name="Mildew",
        severity="high",
        crop_types=["blueberry"],
        treatment=TreatmentPlan(
            products=["Azufre mojable", "Cobre"],
            dosage="2-3 g/L de agua",
            application_method="Aspersión foliar preventiva",
            frequency="Cada 10-14 días",
            waiting_period_days=7,
        ),
        prevention=[
            "Mejorar ventilación entre plantas",
            "Evitar riego por aspersión",
            "Eliminar hojas infectadas",
            "Aplicar preventivamente en períodos húmedos",
        ],
        notes="Crítico en condiciones de alta humedad. No mezclar azufre con aceites.",
    ),
    Recipe(
        id="3",
        name="Control de Botrytis (Moho Gris)",
        problem="disease",
        problem_name="Botrytis",
        severity="high",
        crop_types=["blueberry", "raspberry"],
        treatment=TreatmentPlan(
            products=["Iprodiona", "Pirimetanil", "Fenhexamid"],
            dosage="Según etiqueta del fabricante",
            application_method="Aspersión durante floración y pre-cosecha",
            frequency="Máximo 2-3 aplicaciones por temporada",
            waiting_period_days=14,
        ),
        prevention=[
            "Asegurar buena circulación de aire",
            "Evitar daños mecánicos en frutos",
            "Remover frutos infectados inmediatamente",
            "Reducir humedad en el cultivo",
        ],
        notes="Rotar productos para evitar resistencia. Crítico en pre-cosecha.",
    ),
    Recipe(
        id="4",
        name="Control de Trips en Frambuesa",
        problem="pest",
        problem_name="Thrips",
        severity="medium",
        crop_types=["raspberry"],
        treatment=TreatmentPlan(
            products=["Spinosad", "Beauveria bassiana"],
            dosage="0.5-1 ml/L de agua",
            application_method="Aspersión dirigida a brotes y flores",
            frequency="Cada 5-7 días durante brote",
            waiting_period_days=1,
        ),
        prevention=[
            "Trampas cromáticas azules",
            "Control de malezas hospederas",
            "Monitoreo con lupa durante floración",
            "Liberación de ácaros depredadores",
        ],
        notes="Aplicar cuando se detecten primeros adultos. Producto orgánico.",
    ),
    Recipe(
        id="5",
        name="Control de Araña Roja",
        problem="pest",
        problem_name="Spider Mite",
        severity="low",
        crop_types=["blueberry", "raspberry"],
        treatment=TreatmentPlan(
            products=["Aceite mineral", "Azufre"],
            dosage="5-10 ml/L de agua",
            application_method="Aspersión foliar, envés de hojas",
            frequency="Cada 7 días por 3 aplicaciones",
            waiting_period_days=3,
        ),
        prevention=[
            "Riego adecuado (evitar estrés hídrico)",
            "Liberación de fitoseidos",
            "Evitar polvo en caminos",
            "Monitoreo con lupa 20x",
        ],
        notes="Más común en condiciones secas y calurosas. No aplicar con temperaturas >30°C.",
    ),
]


def find_recipes(search: str | None = None, problem: str | None = None) -> list[Recipe]:
    """Case-insensitive match on recipe or problem name; ``problem`` of None or 'all' keeps both kinds."""
    term = (search or "").strip().lower()
    matches = []
    for recipe in RECIPES:
        if term and term not in recipe.name.lower() and term not in recipe.problem_name.lower():
            continue
        if problem and problem != "all" and recipe.problem != problem:
            continue
        matches.append(recipe)
    return matches
