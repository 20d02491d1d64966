from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mcp.types import Tool

from indian_store_mcp.audit import get_logger

if TYPE_CHECKING:
    from indian_store_mcp.tools import ToolCatalog

STORES = [
    ("Flipkart", "E-commerce platform offering electronics, fashion, home essentials"),
    ("Amazon India", "Global e-commerce platform with wide product range"),
    ("Reliance Digital", "Electronics and appliances retailer"),
    ("Myntra", "Fashion and lifestyle e-commerce platform"),
    ("Snapdeal", "E-commerce platform with various product categories"),
    ("Tata CLiQ", "Digital commerce platform by Tata Group"),
]


def register(catalog: ToolCatalog) -> None:

    async def list_indian_stores(arguments: dict[str, Any]) -> str:
        """List popular Indian online stores with their services."""
        get_logger("list_indian_stores").info("tool_invoked", store_count=len(STORES))
        return "\n".join(
            f"{i}. {name} - {services}" for i, (name, services) in enumerate(STORES, 1)
        )

    catalog.add(
        Tool(
            name="list_indian_stores",
            description="List popular Indian online stores with their services",
            inputSchema={"type": "object", "properties": {}},
        ),
        list_indian_stores,
    )
