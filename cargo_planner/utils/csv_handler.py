import pandas as pd
import logging
from typing import Dict
from io import StringIO
from sqlalchemy.orm import Session
from ..core.settings import settings
from ..models import Item as ItemModel
from ..schemas import Item, Container
from ..services.inventory import InventoryService

logger = logging.getLogger(__name__)

ITEM_COLUMNS = ["Item ID", "Name", "Width", "Depth", "Height", "Priority", "Preferred Zone"]
CONTAINER_COLUMNS = ["Container ID", "Zone", "Width", "Depth", "Height"]
ARRANGEMENT_COLUMNS = ["Item ID", "Container ID", "Coordinates"]

def _optional(row, column):
    if column not in row or pd.isna(row[column]):
        return None
    return row[column]

def _read_csv(file_content: bytes, required) -> pd.DataFrame:
    df = pd.read_csv(StringIO(file_content.decode()), dtype=str)
    df.columns = [str(c).strip() for c in df.columns]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"Missing columns: {', '.join(missing)}")
    return df

class CSVHandler:
    inventory_service = InventoryService()

    @staticmethod
    async def import_items(db: Session, file_content: bytes) -> Dict:
        """Add items from CSV as unplaced cargo. Bad rows are reported and skipped."""
        try:
            df = _read_csv(file_content, ITEM_COLUMNS)
        except Exception as e:
            logger.error(f"File processing error: {str(e)}")
            return {
                "success": False,
                "itemsImported": 0,
                "errors": [{"message": f"File processing error: {str(e)}"}]
            }

        logger.info(f"Starting item import of {len(df)} rows")
        items_imported = 0
        errors = []

        for index, row in df.iterrows():
            try:
                usage_limit = _optional(row, "Usage Limit")
                expiry = _optional(row, "Expiry Date")
                item = Item(
                    item_id=str(row["Item ID"]).strip(),
                    name=str(row["Name"]).strip(),
                    width=float(row["Width"]),
                    depth=float(row["Depth"]),
                    height=float(row["Height"]),
                    mass=float(_optional(row, "Mass") or 0.0),
                    priority=int(float(row["Priority"])),
                    expiry_date=pd.to_datetime(expiry, utc=True).to_pydatetime() if expiry else None,
                    usage_limit=int(float(usage_limit)) if usage_limit is not None else None,
                    preferred_zone=str(row["Preferred Zone"]).strip()
                )
                CSVHandler.inventory_service.save_item(db, item)
                db.commit()
                items_imported += 1
            except Exception as e:
                logger.error(f"Error importing row {index + 1}: {str(e)}")
                db.rollback()
                errors.append({"row": index + 1, "message": str(e)})

        logger.info(f"Successfully imported {items_imported} items")
        return {
            "success": True,
            "itemsImported": items_imported,
            "errors": errors
        }

    @staticmethod
    async def import_containers(db: Session, file_content: bytes) -> Dict:
        try:
            df = _read_csv(file_content, CONTAINER_COLUMNS)
        except Exception as e:
            logger.error(f"File processing error: {str(e)}")
            return {
                "success": False,
                "containersImported": 0,
                "errors": [{"message": f"File processing error: {str(e)}"}]
            }

        logger.info("Starting container import")
        containers_imported = 0
        errors = []

        for index, row in df.iterrows():
            try:
                max_weight = _optional(row, "Max Weight")
                container = Container(
                    container_id=str(row["Container ID"]).strip(),
                    zone=str(row["Zone"]).strip(),
                    width=float(row["Width"]),
                    depth=float(row["Depth"]),
                    height=float(row["Height"]),
                    max_weight=float(max_weight) if max_weight is not None else settings.DEFAULT_CONTAINER_MAX_WEIGHT
                )
                CSVHandler.inventory_service.save_container(db, container)
                db.commit()
                containers_imported += 1
            except Exception as e:
                logger.error(f"Error importing row {index + 1}: {str(e)}")
                db.rollback()
                errors.append({"row": index + 1, "message": str(e)})

        logger.info(f"Successfully imported {containers_imported} containers")
        return {
            "success": True,
            "containersImported": containers_imported,
            "errors": errors
        }

    @staticmethod
    def export_arrangement(db: Session) -> str:
        items = db.query(ItemModel).filter(ItemModel.container_id.isnot(None)).order_by(ItemModel.id).all()

        rows = []
        for item in items:
            if item.position:
                start = item.position["startCoordinates"]
                end = item.position["endCoordinates"]
                rows.append({
                    "Item ID": item.id,
                    "Container ID": item.container_id,
                    "Coordinates": (
                        f"({start['width']},{start['depth']},{start['height']}),"
                        f"({end['width']},{end['depth']},{end['height']})"
                    )
                })

        return pd.DataFrame(rows, columns=ARRANGEMENT_COLUMNS).to_csv(index=False)
