import json

import pytest

from isomapper import models
from isomapper.exporter import HAS_YAML, Exporter


def test_generate_schema_basic():
    schema = Exporter.generate_schema(models.PostalAddress)
    assert schema["type"] == "object"
    assert "country" in schema["properties"]
    assert schema["properties"]["country"]["type"] == "string"
    assert schema["properties"]["country"]["nullable"] is True
    assert "required" not in schema


def test_generate_schema_types():
    schema = Exporter.generate_schema(models.Entry)
    properties = schema["properties"]

    assert properties["amount"] == {"type": "integer"}
    assert properties["reversal"] == {"type": "boolean"}
    assert properties["booking_date"] == {"type": "string", "format": "date-time", "nullable": True}
    assert properties["transactions"] == {
        "type": "array",
        "items": {"$ref": "#/components/schemas/Transaction"},
    }
    assert {"credit_debit_indicator", "amount", "currency", "reversal"} <= set(schema["required"])


def test_generate_schema_unions_and_enums():
    party = Exporter.generate_schema(models.Party)
    assert party["properties"]["account"]["nullable"] is True
    assert {"$ref": "#/components/schemas/IbanAccount"} in party["properties"]["account"]["oneOf"]

    status = Exporter.generate_schema(models.GroupStatusInformation)
    assert "RJCT" in status["properties"]["status"]["enum"]

    statement = Exporter.generate_schema(models.Statement)
    assert statement["properties"]["sum_of_entries"]["format"] == "decimal"


def test_generate_schema_rejects_non_dataclass():
    with pytest.raises(ValueError):
        Exporter.generate_schema(dict)


def test_to_openapi_structure():
    spec = Exporter.to_openapi()
    assert spec["openapi"] == "3.0.0"
    assert spec["paths"] == {}
    schemas = spec["components"]["schemas"]
    assert "Statement" in schemas
    assert "PaymentInstruction" in schemas
    assert "ValidationReport" in schemas
    assert len(schemas) == len(Exporter.MODEL_CLASSES)


def test_every_reference_resolves():
    spec = Exporter.to_openapi()
    schemas = spec["components"]["schemas"]
    text = json.dumps(spec)
    for name in schemas:
        assert schemas[name]["type"] == "object"
    for ref in {part.split('"')[0] for part in text.split("#/components/schemas/")[1:]}:
        assert ref in schemas


def test_export_json(tmp_path):
    path = tmp_path / "openapi.json"
    Exporter.export_json(str(path))
    with open(path) as f:
        assert json.load(f)["openapi"] == "3.0.0"


@pytest.mark.skipif(not HAS_YAML, reason="PyYAML not installed")
def test_export_yaml(tmp_path):
    import yaml

    path = tmp_path / "openapi.yaml"
    Exporter.export_yaml(str(path))
    with open(path) as f:
        assert yaml.safe_load(f)["openapi"] == "3.0.0"
