"""
api/routes/v1/tours.py -- Tour catalogue routes.

Routes:
  GET    /tours              -- list tours            (requires auth)
  GET    /tours/{tour_id}    -- tour detail           (requires auth)
  POST   /tours              -- create tour           (admin, lead-guide)
  PATCH  /tours/{tour_id}    -- update tour fields    (admin, lead-guide)
  DELETE /tours/{tour_id}    -- delete tour           (admin, lead-guide)

The whole router sits behind get_current_user; write routes add
restrict_to(), which returns 403 for any other role before the handler runs.
"""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.exc import IntegrityError

from api.models import TourCreate, TourData, TourListResponse, TourOut, TourResponse, ToursData, TourUpdate
from auth.dependencies import get_current_user, restrict_to
from auth.models import Role
from core.errors import NotFoundError, ValidationError
from tours.models import Tour
from tours.store import TourStore

router = APIRouter(prefix="/tours", dependencies=[Depends(get_current_user)])

_editors = restrict_to(Role.admin, Role.lead_guide)

# Columns that may legitimately be set to null by a PATCH.
_NULLABLE = {"price_discount", "description"}


def _get_or_404(store: TourStore, tour_id: int) -> Tour:
    tour = store.get_tour(tour_id)
    if tour is None:
        raise NotFoundError("No tour found with that ID")
    return tour


@router.get("", response_model=TourListResponse)
def list_tours(request: Request) -> TourListResponse:
    store: TourStore = request.app.state.tour_store
    tours = [TourOut.from_tour(t) for t in store.list_tours()]
    return TourListResponse(results=len(tours), data=ToursData(tours=tours))


@router.get("/{tour_id}", response_model=TourResponse)
def get_tour(request: Request, tour_id: int) -> TourResponse:
    store: TourStore = request.app.state.tour_store
    return TourResponse(data=TourData(tour=TourOut.from_tour(_get_or_404(store, tour_id))))


@router.post("", response_model=TourResponse, status_code=201, dependencies=[Depends(_editors)])
def create_tour(request: Request, body: TourCreate) -> TourResponse:
    store: TourStore = request.app.state.tour_store
    tour = Tour(
        name=body.name,
        duration=body.duration,
        max_group_size=body.max_group_size,
        difficulty=body.difficulty.value,
        price=body.price,
        summary=body.summary,
        image_cover=body.image_cover,
        ratings_average=body.ratings_average,
        ratings_quantity=body.ratings_quantity,
        price_discount=body.price_discount,
        description=body.description,
        images=body.images,
        start_dates=body.start_dates,
    )
    try:
        tour_id = store.create_tour(tour)
    except IntegrityError as exc:
        raise ValidationError(f"Duplicate tour name: {body.name!r}. Please use another value.") from exc
    return TourResponse(data=TourData(tour=TourOut.from_tour(store.get_tour(tour_id))))


@router.patch("/{tour_id}", response_model=TourResponse, dependencies=[Depends(_editors)])
def update_tour(request: Request, tour_id: int, body: TourUpdate) -> TourResponse:
    store: TourStore = request.app.state.tour_store
    _get_or_404(store, tour_id)
    updates = {
        k: v for k, v in body.model_dump(exclude_unset=True, mode="json").items() if v is not None or k in _NULLABLE
    }
    try:
        store.update_tour(tour_id, **updates)
    except IntegrityError as exc:
        raise ValidationError("Duplicate tour name. Please use another value.") from exc
    return TourResponse(data=TourData(tour=TourOut.from_tour(_get_or_404(store, tour_id))))


@router.delete("/{tour_id}", status_code=204, dependencies=[Depends(_editors)])
def delete_tour(request: Request, tour_id: int) -> Response:
    store: TourStore = request.app.state.tour_store
    if not store.delete_tour(tour_id):
        raise NotFoundError("No tour found with that ID")
    return Response(status_code=204)
