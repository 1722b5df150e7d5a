import re
from dataclasses import fields, is_dataclass
from typing import Any, Iterator, List, Optional, Tuple, Union

from isomapper.errors import Iso20022Error
from isomapper.models import AbaAgent, BicAgent, IbanAccount, PaymentIdentification, ValidationReport


class Validator:
    """
    Reporting-only checks of the identifiers carried by a mapped message:
    BICs, IBANs, ABA routing numbers, UETRs and currency codes.

    Nothing here raises on a bad identifier; findings are collected into a
    ValidationReport.
    """

    _bic_pattern = re.compile(r"\A[A-Z]{4}[A-Z]{2}[A-Z0-9]{2}([A-Z0-9]{3})?\Z")
    _iban_format_pattern = re.compile(r"\A[A-Z]{2}[0-9]{2}[A-Z0-9]{11,30}\Z")
    _iban_cleaner_pattern = re.compile(r"[ \-\.]")
    _aba_pattern = re.compile(r"\A[0-9]{9}\Z")
    _currency_pattern = re.compile(r"\A[A-Z]{3}\Z")
    _uuid4_pattern = re.compile(
        r"\A[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}\Z", re.I
    )

    @staticmethod
    def _validate_bic(bic: Optional[str]) -> Optional[str]:
        """
        Validates ISO 9362 BIC formatting: 8 or 11 characters.
        """
        if not bic:
            return None
        if not Validator._bic_pattern.match(bic):
            return f"Invalid BIC format: '{bic}'. Must match ISO 9362 standard 8 or 11 characters."
        return None

    @staticmethod
    def _validate_iban_checksum(iban: Optional[str]) -> Optional[str]:
        """
        Validates an International Bank Account Number with the Modulo-97
        algorithm. Returns None if valid, or an error string if invalid.
        """
        if not iban:
            return None
        if len(iban) > 100:
            return "Invalid IBAN structure: excessively long string rejected."

        formatted_iban = Validator._iban_cleaner_pattern.sub("", iban.strip().upper())
        if not Validator._iban_format_pattern.match(formatted_iban):
            return f"Invalid IBAN format: '{iban.strip()}' does not meet ISO 13616 standards."

        # move the country code and check digits to the end, then letters to numbers (A=10 ... Z=35)
        rearranged = formatted_iban[4:] + formatted_iban[:4]
        numeric_iban = "".join(str(ord(char) - 55) if char.isalpha() else char for char in rearranged)
        if int(numeric_iban) % 97 != 1:
            return f"Invalid IBAN checksum: '{formatted_iban}'. Failed international Modulo-97 algorithm."
        return None

    @staticmethod
    def _validate_aba(routing_number: Optional[str]) -> Optional[str]:
        """
        Validates a 9-digit ABA routing transit number with its 3-7-1
        weighted checksum.
        """
        if not routing_number:
            return None
        if not Validator._aba_pattern.match(routing_number):
            return f"Invalid ABA routing number format: '{routing_number}'. Must be 9 digits."
        digits = [int(char) for char in routing_number]
        checksum = (
            3 * (digits[0] + digits[3] + digits[6])
            + 7 * (digits[1] + digits[4] + digits[7])
            + (digits[2] + digits[5] + digits[8])
        )
        if checksum % 10 != 0:
            return f"Invalid ABA routing number checksum: '{routing_number}'."
        return None

    @staticmethod
    def _validate_uetr(uetr: Optional[str]) -> Optional[str]:
        if not uetr:
            return None
        if not Validator._uuid4_pattern.match(uetr):
            return f"Invalid UETR format: '{uetr}'. Must be a valid UUIDv4 string."
        return None

    @staticmethod
    def _validate_currency(currency: Optional[str]) -> Optional[str]:
        if currency is None:
            return None
        if not Validator._currency_pattern.match(currency):
            return f"currency must be exactly 3 uppercase alphabetical characters, found: '{currency}'"
        return None

    @staticmethod
    def _walk(value: Any, path: str) -> Iterator[Tuple[str, Any]]:
        """Yields every dataclass instance reachable from ``value`` with its path."""
        if is_dataclass(value) and not isinstance(value, type):
            yield path, value
            for f in fields(value):
                yield from Validator._walk(getattr(value, f.name), f"{path}.{f.name}" if path else f.name)
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                yield from Validator._walk(item, f"{path}[{index}]")

    @staticmethod
    def validate(message: Any) -> ValidationReport:
        """
        Runs every identifier check against a mapped message, or against any
        of the domain dataclasses it contains.

        Args:
            message: A mapper instance such as a pain.001 initiation or a
                camt.053 report.

        Returns:
            ValidationReport: ``is_valid`` is False when at least one error
            was found. Error strings are prefixed with the path of the object
            they refer to.
        """
        errors: List[str] = []
        for path, node in Validator._walk(message, ""):
            label = f"[{path or type(node).__name__}]"
            error = None
            if isinstance(node, BicAgent):
                error = Validator._validate_bic(node.bic)
            elif isinstance(node, AbaAgent):
                error = Validator._validate_aba(node.routing_number)
            elif isinstance(node, IbanAccount):
                error = Validator._validate_iban_checksum(node.iban)
            elif isinstance(node, PaymentIdentification):
                error = Validator._validate_uetr(node.uetr)
            if error:
                errors.append(f"{label} {error}")

            currency_error = Validator._validate_currency(getattr(node, "currency", None))
            if currency_error:
                errors.append(f"{label} {currency_error}")

        return ValidationReport(is_valid=not errors, errors=errors)

    @staticmethod
    def validate_payload(raw_data: Union[str, bytes]) -> ValidationReport:
        """
        Structural check of a raw ISO 20022 payload followed by the
        identifier checks of :meth:`validate`. Mapping failures are reported
        instead of raised.
        """
        from isomapper.registry import from_xml

        try:
            message = from_xml(raw_data)
        except Iso20022Error as exc:
            return ValidationReport(is_valid=False, errors=[str(exc)])
        return Validator.validate(message)
