from typing import Any

from fastapi import APIRouter, HTTPException
from sqlalchemy import func
from sqlmodel import col, select

from berryvision import crud
from berryvision.api.deps import SessionDep
from berryvision.models import GrowthRecord, Plant, PlantBase

router = APIRouter()


@router.get("/plants")
def read_plants(
    session: SessionDep,
    sector: str | None = None,
    crop_type: str | None = None,
    health_status: str | None = None,
    stage: str | None = None,
    is_active: bool | None = None,
    limit: int = 50,
    offset: int = 0,
) -> Any:
    """Plants with their record count and most recent growth record."""
    statement = select(Plant)
    if sector:
        statement = statement.where(Plant.sector == sector)
    if crop_type:
        statement = statement.where(Plant.crop_type == crop_type)
    if health_status:
        statement = statement.where(Plant.health_status == health_status)
    if stage:
        statement = statement.where(Plant.current_stage == stage)
    if is_active is not None:
        statement = statement.where(Plant.is_active == is_active)

    plants, total = crud.paginate(
        session, statement.order_by(col(Plant.created_at).desc()), limit=limit, offset=offset
    )

    record_counts = dict(
        session.exec(
            select(GrowthRecord.plant_id, func.count())
            .where(col(GrowthRecord.plant_id).in_([plant.id for plant in plants]))
            .group_by(GrowthRecord.plant_id)
        ).all()
    )
    plants_with_stats = [
        {
            **plant.model_dump(),
            "total_records": record_counts.get(plant.id, 0),
            "latest_record": crud.get_latest_growth_record(session=session, plant_id=plant.id),
        }
        for plant in plants
    ]
    return {"success": True, "plants": plants_with_stats, "total": total, "limit": limit, "offset": offset}


@router.post("/plants")
def create_plant(*, session: SessionDep, plant_in: PlantBase) -> Any:
    if crud.get_plant_by_code(session=session, plant_code=plant_in.plant_code):
        raise HTTPException(status_code=400, detail="A plant with that code already exists")

    plant = crud.create_plant(session=session, plant=Plant.model_validate(plant_in))
    return {"success": True, "plant": plant}
