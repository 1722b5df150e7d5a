from dataclasses import fields, is_dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Union, get_args, get_origin, get_type_hints
import json
try:
    import yaml
    HAS_YAML = True
except ImportError:
    HAS_YAML = False
from isomapper import models


class Exporter:
    """
    Utility to export the isomapper domain dataclasses as OpenAPI 3.0.0
    component schemas.
    """

    # Wire-level types only; the mapper classes themselves are not exported
    MODEL_CLASSES = [
        models.PostalAddress,
        models.IbanAccount,
        models.LocalAccount,
        models.OtherAccountIdentification,
        models.BicAgent,
        models.AbaAgent,
        models.Party,
        models.MessageHeader,
        models.BankTransactionCode,
        models.Balance,
        models.Transaction,
        models.Entry,
        models.Statement,
        models.BusinessError,
        models.BalanceReport,
        models.AccountReport,
        models.AccountReportOrError,
        models.PaymentIdentification,
        models.TransactionReportStatus,
        models.TransactionReport,
        models.TransactionReportOrError,
        models.AccountCriterion,
        models.AccountQueryCriteria,
        models.TransactionCriterion,
        models.TransactionQueryCriteria,
        models.StatusReason,
        models.GroupStatusInformation,
        models.PaymentStatusInformation,
        models.TransactionStatusInformation,
        models.OriginalGroupInformation,
        models.PaymentInstruction,
        models.ValidationReport,
    ]

    @staticmethod
    def _map_python_type_to_openapi(py_type: Any) -> Dict[str, Any]:
        """
        Maps a Python type to its OpenAPI schema representation.
        """
        origin = get_origin(py_type)
        args = get_args(py_type)

        if origin is Union:
            members = [t for t in args if t is not type(None)]
            if len(members) == 1:
                schema = Exporter._map_python_type_to_openapi(members[0])
            else:
                # discriminated unions of dataclasses (accounts, agents, statuses)
                schema = {"oneOf": [Exporter._map_python_type_to_openapi(t) for t in members]}
            if type(None) in args:
                # OpenAPI 3.0 uses 'nullable: true'
                schema["nullable"] = True
            return schema

        if isinstance(py_type, type) and issubclass(py_type, Enum):
            return {"type": "string", "enum": [member.value for member in py_type]}
        if py_type is bool:
            return {"type": "boolean"}
        if py_type is str:
            return {"type": "string"}
        if py_type is int:
            return {"type": "integer"}
        if py_type is float:
            return {"type": "number"}
        if py_type is Decimal:
            return {"type": "string", "format": "decimal"}
        if py_type is datetime:
            return {"type": "string", "format": "date-time"}

        if origin is list or py_type is list:
            item_type = args[0] if args else Any
            return {
                "type": "array",
                "items": Exporter._map_python_type_to_openapi(item_type)
            }
        if origin is dict or py_type is dict:
            return {"type": "object"}

        if is_dataclass(py_type):
            return {"$ref": f"#/components/schemas/{py_type.__name__}"}

        return {"type": "string"}  # Fallback

    @staticmethod
    def generate_schema(model_class: Any) -> Dict[str, Any]:
        """
        Generates a JSON Schema component for a given dataclass.

        Raises:
            ValueError: If ``model_class`` is not a dataclass.
        """
        if not is_dataclass(model_class):
            raise ValueError(f"{model_class} is not a dataclass")

        hints = get_type_hints(model_class)
        properties = {}
        required = []

        for field in fields(model_class):
            field_type = hints.get(field.name, field.type)
            properties[field.name] = Exporter._map_python_type_to_openapi(field_type)
            is_optional = get_origin(field_type) is Union and type(None) in get_args(field_type)
            if not is_optional:
                required.append(field.name)

        schema = {
            "type": "object",
            "properties": properties,
            "description": model_class.__doc__.strip() if model_class.__doc__ else None
        }

        if required:
            schema["required"] = required

        return schema

    @staticmethod
    def to_openapi() -> Dict[str, Any]:
        """
        Generates a complete OpenAPI 3.0.0 specification for all isomapper models.
        """
        schemas = {model.__name__: Exporter.generate_schema(model) for model in Exporter.MODEL_CLASSES}

        return {
            "openapi": "3.0.0",
            "info": {
                "title": "isomapper ISO 20022 Message API",
                "version": "1.0.0",
                "description": "Typed views of camt.003-006, camt.053, pain.001 and pain.002 messages."
            },
            "components": {
                "schemas": schemas
            },
            "paths": {}  # required for a valid OpenAPI document
        }

    @staticmethod
    def export_json(path: str):
        """
        Saves the OpenAPI spec to a JSON file.
        """
        spec = Exporter.to_openapi()
        with open(path, "w") as f:
            json.dump(spec, f, indent=2)

    @staticmethod
    def export_yaml(path: str):
        """
        Saves the OpenAPI spec to a YAML file.

        Raises:
            ImportError: If PyYAML is not installed.
        """
        if not HAS_YAML:
            raise ImportError("PyYAML is required for YAML export. Install it with 'pip install PyYAML'.")
        spec = Exporter.to_openapi()
        with open(path, "w") as f:
            yaml.dump(spec, f, sort_keys=False)
