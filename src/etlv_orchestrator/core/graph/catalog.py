# src/etlv_orchestrator/core/graph/catalog.py
"""
Catálogo embutido de objetos de migração padrão.

Dois mapas declarativos:
    - DEFAULT_DEPENDENCIES: objeto → pré-requisitos (devem migrar antes)
    - DEFAULT_MODULES: objeto → tag de módulo (FI, CO, MM, SD, ...)

Este catálogo é apenas dado; o comportamento vive em `DependencyGraph`.
"""

from __future__ import annotations

from typing import Dict, List, Tuple


DEFAULT_DEPENDENCIES: Dict[str, List[str]] = {
    "GL_BALANCE": ["GL_ACCOUNT_MASTER"],
    "GL_ACCOUNT_MASTER": [],
    "CUSTOMER_OPEN_ITEM": ["BUSINESS_PARTNER"],
    "VENDOR_OPEN_ITEM": ["BUSINESS_PARTNER"],
    "BUSINESS_PARTNER": ["BANK_MASTER"],
    "MATERIAL_MASTER": [],
    "PURCHASE_ORDER": ["BUSINESS_PARTNER", "MATERIAL_MASTER"],
    "SALES_ORDER": ["BUSINESS_PARTNER", "MATERIAL_MASTER", "PRICING_CONDITION"],
    "FIXED_ASSET": ["COST_CENTER"],
    "ASSET_ACQUISITION": ["FIXED_ASSET"],
    "COST_CENTER": ["PROFIT_CENTER"],
    "COST_ELEMENT": [],
    "PROFIT_CENTER": [],
    "PROFIT_SEGMENT": ["PROFIT_CENTER"],
    "BANK_MASTER": [],
    "EMPLOYEE_MASTER": ["BUSINESS_PARTNER"],
    "EQUIPMENT_MASTER": ["FUNCTIONAL_LOCATION"],
    "FUNCTIONAL_LOCATION": [],
    "WORK_CENTER": ["COST_CENTER"],
    "MAINTENANCE_ORDER": ["EQUIPMENT_MASTER", "WORK_CENTER"],
    "PRODUCTION_ORDER": ["MATERIAL_MASTER", "WORK_CENTER"],
    "BATCH_MASTER": ["MATERIAL_MASTER"],
    "SOURCE_LIST": ["BUSINESS_PARTNER", "MATERIAL_MASTER"],
    "SCHEDULING_AGREEMENT": ["BUSINESS_PARTNER", "MATERIAL_MASTER"],
    "PURCHASE_CONTRACT": ["BUSINESS_PARTNER", "MATERIAL_MASTER"],
    "PRICING_CONDITION": ["MATERIAL_MASTER"],
    "FI_CONFIG": [],
    "CO_CONFIG": [],
    "MM_CONFIG": [],
    "SD_CONFIG": [],
    "WBS_ELEMENT": ["PROFIT_CENTER", "COST_CENTER"],
    "INTERNAL_ORDER": ["COST_CENTER"],
    "RFC_DESTINATION": [],
    "IDOC_CONFIG": [],
    "WEB_SERVICE": [],
    "BATCH_JOB": [],
    "WAREHOUSE_STRUCTURE": [],
    "TRANSPORT_ROUTE": [],
    "TRADE_COMPLIANCE": [],
    "BW_EXTRACTOR": [],
    "BOM_ROUTING": ["MATERIAL_MASTER", "WORK_CENTER"],
    "INSPECTION_PLAN": ["MATERIAL_MASTER"],
}


DEFAULT_MODULES: Dict[str, str] = {
    "GL_BALANCE": "FI",
    "GL_ACCOUNT_MASTER": "FI",
    "CUSTOMER_OPEN_ITEM": "FI",
    "VENDOR_OPEN_ITEM": "FI",
    "FIXED_ASSET": "FI",
    "ASSET_ACQUISITION": "FI",
    "FI_CONFIG": "FI",
    "COST_CENTER": "CO",
    "COST_ELEMENT": "CO",
    "PROFIT_CENTER": "CO",
    "PROFIT_SEGMENT": "CO",
    "INTERNAL_ORDER": "CO",
    "WBS_ELEMENT": "CO",
    "CO_CONFIG": "CO",
    "MATERIAL_MASTER": "MM",
    "PURCHASE_ORDER": "MM",
    "SOURCE_LIST": "MM",
    "SCHEDULING_AGREEMENT": "MM",
    "PURCHASE_CONTRACT": "MM",
    "BATCH_MASTER": "MM",
    "MM_CONFIG": "MM",
    "SALES_ORDER": "SD",
    "PRICING_CONDITION": "SD",
    "SD_CONFIG": "SD",
    "PRODUCTION_ORDER": "PP",
    "BOM_ROUTING": "PP",
    "INSPECTION_PLAN": "PP",
    "EQUIPMENT_MASTER": "PM",
    "FUNCTIONAL_LOCATION": "PM",
    "WORK_CENTER": "PM",
    "MAINTENANCE_ORDER": "PM",
    "EMPLOYEE_MASTER": "HR",
    "BANK_MASTER": "HR",
    "BUSINESS_PARTNER": "HR",
    "WAREHOUSE_STRUCTURE": "EWM",
    "TRANSPORT_ROUTE": "TM",
    "TRADE_COMPLIANCE": "GTS",
    "BW_EXTRACTOR": "BW",
    "RFC_DESTINATION": "BASIS",
    "IDOC_CONFIG": "BASIS",
    "WEB_SERVICE": "BASIS",
    "BATCH_JOB": "BASIS",
}


# Cluster de objetos de interface (excluídos com include_interfaces=False)
INTERFACE_OBJECTS: Tuple[str, ...] = (
    "RFC_DESTINATION",
    "IDOC_CONFIG",
    "WEB_SERVICE",
    "BATCH_JOB",
)

CONFIG_SUFFIX = "_CONFIG"
