import copy
import json

import pytest

SALES_SCHEMA = {
    "title": "Quarterly Sales",
    "theme": {"headerBg": "#1F4E79", "headerText": "#FFFFFF"},
    "sheets": [
        {
            "name": "Report",
            "showTitle": True,
            "autoFilter": True,
            "freezePanes": {"x": 1},
            "columns": [
                {"header": "Product", "key": "product", "width": 30},
                {"header": "Units", "key": "units", "format": "number", "alignment": "right"},
                {"header": "Total", "key": "total", "format": "currency", "alignment": "right"},
            ],
            "rows": [
                {"product": "Laptop", "units": 3, "total": 4500.0},
                {"product": "Monitor", "units": 5, "total": 1250.5},
                {"product": "Grand total", "total": {"formula": "SUM(C3:C4)"}},
            ],
        }
    ],
}


@pytest.fixture
def schema_dict():
    return copy.deepcopy(SALES_SCHEMA)


@pytest.fixture
def envelope_dict(schema_dict):
    return {
        "schema": schema_dict,
        "followUp": "Want a chart of totals by product?",
        "suggestions": ["Add a monthly breakdown", "Add a discount column"],
        "mode": "standard",
    }


@pytest.fixture
def envelope_json(envelope_dict):
    return json.dumps(envelope_dict)
