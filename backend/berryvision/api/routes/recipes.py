from typing import Any

from fastapi import APIRouter

from berryvision.recipes import find_recipes

router = APIRouter()


@router.get("")
def read_recipes(search: str | None = None, problem: str | None = None) -> Any:
    recipes = find_recipes(search=search, problem=problem)
    return {"success": True, "recipes": recipes, "total": len(recipes)}
