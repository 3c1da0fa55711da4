import uuid
from typing import Any

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlmodel import col, select

from berryvision import crud
from berryvision.api.deps import SessionDep
from berryvision.dataset import to_jsonl
from berryvision.models import TrainingImage, get_datetime_utc

router = APIRouter()


class CamelModel(BaseModel):
    # The labeling UI posts camelCase; snake_case is accepted too.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TrainingImageCreate(CamelModel):
    image_url: str | None = None
    crop_type: str | None = None
    health_status: str | None = None
    disease_name: str | None = None
    disease_confidence: float | None = None
    pest_name: str | None = None
    pest_confidence: float | None = None
    phenology_bbch: int | None = Field(default=None, ge=0, le=99)
    notes: str | None = None
    verified_by: str | None = None
    source: str = "manual_upload"


class TrainingImageUpdate(CamelModel):
    id: uuid.UUID | None = None
    used_for_training: bool | None = None
    training_batch: str | None = None


@router.get("/training")
def read_training_images(
    session: SessionDep,
    used_for_training: bool | None = None,
    limit: int = 50,
    offset: int = 0,
) -> Any:
    statement = select(TrainingImage)
    if used_for_training is not None:
        statement = statement.where(TrainingImage.used_for_training == used_for_training)
    images, total = crud.paginate(
        session, statement.order_by(col(TrainingImage.created_at).desc()), limit=limit, offset=offset
    )
    return {"success": True, "images": images, "total": total, "limit": limit, "offset": offset}


@router.post("/training")
def create_training_image(*, session: SessionDep, image_in: TrainingImageCreate) -> Any:
    if not (image_in.image_url and image_in.crop_type and image_in.health_status):
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: imageUrl, cropType, healthStatus",
        )
    image = TrainingImage.model_validate(
        image_in.model_dump(exclude={"verified_by"}),
        update={"verified_by": image_in.verified_by or "user", "verified_at": get_datetime_utc()},
    )
    return {"success": True, "image": crud.save(session, image)}


@router.patch("/training")
def update_training_image(*, session: SessionDep, image_in: TrainingImageUpdate) -> Any:
    if not image_in.id:
        raise HTTPException(status_code=400, detail="Missing image ID")
    image = session.get(TrainingImage, image_in.id)
    if not image:
        raise HTTPException(status_code=404, detail="Training image not found")
    image = crud.update_fields(
        session=session, db_obj=image, data=image_in.model_dump(exclude_unset=True, exclude={"id"})
    )
    return {"success": True, "image": image}


@router.delete("/training")
def delete_training_image(session: SessionDep, id: uuid.UUID | None = None) -> Any:
    if not id:
        raise HTTPException(status_code=400, detail="Missing image ID")
    image = session.get(TrainingImage, id)
    if image:
        session.delete(image)
        session.commit()
    return {"success": True}


@router.get("/export-dataset")
def export_dataset(session: SessionDep) -> Any:
    """All training images as a JSONL fine-tuning file, oldest first."""
    images = session.exec(select(TrainingImage).order_by(col(TrainingImage.created_at).asc())).all()
    if not images:
        raise HTTPException(status_code=404, detail="No training data available")

    filename = f"berryvision_dataset_{get_datetime_utc().date().isoformat()}.jsonl"
    return Response(
        content=to_jsonl(images),
        media_type="application/jsonl",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
