from fastapi import FastAPI, UploadFile, File, Query, Depends
from fastapi.middleware.cors import CORSMiddleware
from datetime import datetime
from typing import List, Optional
import logging
from sqlalchemy.orm import Session
from .core.settings import settings
from .schemas import (
    Item, ItemUpdate, Container, ContainerUpdate,
    PlacementRequest, PlacementResponse,
    RetrievalPlanRequest, RetrievalResponse,
    SearchResponse, RetrievalRequest,
    PlaceItemRequest, WasteResponse,
    SimulationRequest, SimulationResponse,
    LogResponse
)
from .services.placement import PlacementService
from .services.retrieval import RetrievalService
from .services.inventory import InventoryService, to_item_schema, to_container_schema
from .services.search import SearchService
from .services.waste import WasteManagementService
from .services.simulation import SimulationService
from .services.logging import LoggingService
from .utils.database import get_db, init_db
from .utils.csv_handler import CSVHandler
from .utils.error_handling import InventoryError
from .middleware.error_handler import error_handler_middleware

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

# Add error handling middleware
app.middleware("http")(error_handler_middleware)

# Initialize services
placement_service = PlacementService()
retrieval_service = RetrievalService()
inventory_service = InventoryService()
search_service = SearchService()
waste_service = WasteManagementService()
simulation_service = SimulationService()
logging_service = LoggingService()

# Initialize database
init_db()

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Planning routes (snapshot in, decision out, nothing stored)
@app.post("/api/placement", response_model=PlacementResponse)
async def placement_recommendations(request: PlacementRequest):
    plan = placement_service.optimize_placement(request.items, request.containers)
    return PlacementResponse(
        success=True,
        placements=plan.placements,
        rearrangements=plan.rearrangements,
        unplaced_items=plan.unplaced_items,
        space_utilization={c.container_id: round(c.utilization, 2) for c in plan.containers}
    )

@app.post("/api/retrieval/plan", response_model=RetrievalResponse, response_model_exclude_none=True)
async def retrieval_plan(request: RetrievalPlanRequest):
    plan = retrieval_service.plan_retrieval(request.item_id, request.container_snapshot)
    if not plan.found:
        return RetrievalResponse(success=True, found=False)
    return RetrievalResponse(
        success=True,
        found=True,
        item=plan.item,
        retrieval_steps=plan.steps
    )

# Stored inventory routes
@app.post("/api/placement/optimize")
async def optimize_placement(userId: str = "system", db: Session = Depends(get_db)):
    if not inventory_service.load_items(db, is_waste=False, placed=False):
        return {
            "success": False,
            "message": "No unplaced items found for optimization"
        }
    if not inventory_service.load_containers(db):
        return {
            "success": False,
            "message": "No containers available for placement"
        }

    plan = inventory_service.optimize_stored_items(db, userId, placement_service)
    return {
        "success": True,
        "placements": len(plan.placements),
        "rearrangements": len(plan.rearrangements),
        "unplacedItems": plan.unplaced_items
    }

@app.get("/api/search", response_model=SearchResponse)
async def search_item(
    itemId: Optional[str] = None,
    itemName: Optional[str] = None,
    db: Session = Depends(get_db)
):
    if not itemId and not itemName:
        raise InventoryError("Either itemId or itemName must be provided")
    return search_service.search_item(db, itemId, itemName)

@app.post("/api/retrieve")
async def retrieve_item(
    request: RetrievalRequest,
    db: Session = Depends(get_db)
):
    success = search_service.log_retrieval(
        db,
        request.item_id,
        request.user_id,
        request.timestamp
    )
    return {"success": success}

@app.post("/api/place")
async def place_item(
    request: PlaceItemRequest,
    db: Session = Depends(get_db)
):
    success = search_service.update_item_location(
        db,
        request.item_id,
        request.user_id,
        request.container_id,
        request.position,
        request.timestamp
    )
    return {"success": success}

@app.get("/api/items")
async def list_items(
    containerId: Optional[str] = None,
    isWaste: Optional[bool] = None,
    db: Session = Depends(get_db)
):
    items = inventory_service.load_items(db, container_id=containerId, is_waste=isWaste)
    return {"items": items}

@app.post("/api/items", status_code=201)
async def create_item(item: Item, userId: str = "system", db: Session = Depends(get_db)):
    db_item = inventory_service.save_item(db, item, userId)
    db.commit()
    return {"item": to_item_schema(db_item)}

@app.get("/api/items/{item_id}")
async def get_item(item_id: str, db: Session = Depends(get_db)):
    return {"item": to_item_schema(inventory_service.get_item(db, item_id))}

@app.put("/api/items/{item_id}")
async def update_item(
    item_id: str,
    update: ItemUpdate,
    userId: str = "system",
    db: Session = Depends(get_db)
):
    db_item = inventory_service.update_item(db, item_id, update, userId)
    db.commit()
    return {"item": to_item_schema(db_item)}

@app.delete("/api/items/{item_id}")
async def delete_item(item_id: str, db: Session = Depends(get_db)):
    inventory_service.delete_item(db, item_id)
    db.commit()
    return {"success": True, "message": "Item deleted successfully"}

@app.get("/api/containers", response_model=List[Container])
async def list_containers(zone: Optional[str] = None, db: Session = Depends(get_db)):
    return inventory_service.load_containers(db, zone)

@app.post("/api/containers", status_code=201)
async def create_container(container: Container, db: Session = Depends(get_db)):
    db_container = inventory_service.save_container(db, container)
    db.commit()
    return {"container": to_container_schema(db_container)}

@app.get("/api/containers/{container_id}")
async def get_container(container_id: str, db: Session = Depends(get_db)):
    snapshot = inventory_service.container_snapshot(db, container_id)
    return {"container": snapshot.container, "items": snapshot.items}

@app.get("/api/containers/{container_id}/items")
async def get_container_items(container_id: str, db: Session = Depends(get_db)):
    inventory_service.get_container(db, container_id)
    return inventory_service.load_items(db, container_id=container_id, is_waste=False)

@app.put("/api/containers/{container_id}")
async def update_container(container_id: str, update: ContainerUpdate, db: Session = Depends(get_db)):
    db_container = inventory_service.update_container(db, container_id, update)
    db.commit()
    return {"container": to_container_schema(db_container)}

@app.delete("/api/containers/{container_id}")
async def delete_container(container_id: str, db: Session = Depends(get_db)):
    inventory_service.delete_container(db, container_id)
    db.commit()
    return {"success": True, "message": "Container deleted successfully"}

@app.post("/api/waste/identify", response_model=WasteResponse)
@app.get("/api/waste/identify", response_model=WasteResponse)
async def identify_waste(userId: str = "system", db: Session = Depends(get_db)):
    return waste_service.identify_waste_items(db, user_id=userId)

@app.post("/api/simulate/day", response_model=SimulationResponse)
async def simulate_days(
    request: SimulationRequest,
    db: Session = Depends(get_db)
):
    return simulation_service.simulate_time(db, request)

@app.post("/api/import/items")
async def import_items(
    file: UploadFile = File(...),
    db: Session = Depends(get_db)
):
    contents = await file.read()
    return await CSVHandler.import_items(db, contents)

@app.post("/api/import/containers")
async def import_containers(
    file: UploadFile = File(...),
    db: Session = Depends(get_db)
):
    contents = await file.read()
    return await CSVHandler.import_containers(db, contents)

@app.get("/api/export/arrangement")
async def export_arrangement(db: Session = Depends(get_db)):
    csv_content = CSVHandler.export_arrangement(db)
    return {"content": csv_content}

@app.get("/api/logs", response_model=LogResponse)
async def get_logs(
    startDate: datetime,
    endDate: datetime,
    itemId: Optional[str] = None,
    userId: Optional[str] = None,
    actionType: Optional[str] = Query(None, pattern="^(placement|retrieval|rearrangement|disposal)$"),
    containerId: Optional[str] = None,
    limit: int = Query(20, ge=1, le=1000),
    page: int = Query(1, ge=1),
    db: Session = Depends(get_db)
):
    return logging_service.get_logs(
        db,
        startDate,
        endDate,
        itemId,
        userId,
        actionType,
        containerId,
        limit,
        page
    )

def run():
    import uvicorn
    uvicorn.run("cargo_planner.main:app", host=settings.HOST, port=settings.PORT, reload=False)

if __name__ == "__main__":
    run()
