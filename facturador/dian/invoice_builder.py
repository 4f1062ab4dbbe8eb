"""
FACTURADOR-DIAN: Constructor del XML de factura
================================================
Documento UBL 2.1 mínimo con raíz fe:Invoice, suficiente para el simulador:

- ext:UBLExtensions con los datos de la resolución (sts:InvoiceControl)
- cbc:ID = prefijo + número, fecha de emisión, moneda COP
- emisor (AccountingSupplierParty) y receptor (AccountingCustomerParty)
- cac:LegalMonetaryTotal con el total

No hay ítems ni impuestos detallados. La firma se inserta después con
CertificateSimulator.sign_xml antes del cierre </fe:Invoice>.
"""
import xml.etree.ElementTree as ET
from datetime import date
from typing import Any

NAMESPACES: dict[str, str] = {
    "fe": "urn:oasis:names:specification:ubl:schema:xsd:Invoice-2",
    "ext": "urn:oasis:names:specification:ubl:schema:xsd:CommonExtensionComponents-2",
    "cac": "urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2",
    "cbc": "urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2",
    "sts": "dian:gov:co:facturaelectronica:Structures-2-1",
}

for _prefix, _uri in NAMESPACES.items():
    ET.register_namespace(_prefix, _uri)

SOFTWARE_ID = "FACTURADOR-EDUCATIVO-1.0"
DIAN_AGENCY = {"schemeAgencyID": "195", "schemeAgencyName": "CO, DIAN (Dirección de Impuestos y Aduanas Nacionales)"}


def _q(tag: str) -> str:
    prefix, local = tag.split(":", 1)
    return f"{{{NAMESPACES[prefix]}}}{local}"


def _sub(parent: ET.Element, tag: str, text: Any = None, **attrs) -> ET.Element:
    el = ET.SubElement(parent, _q(tag), {k: str(v) for k, v in attrs.items()})
    if text is not None:
        el.text = str(text)
    return el


def _fmt_date(value) -> str:
    if value is None:
        return date.today().isoformat()
    if hasattr(value, "date") and callable(value.date):
        value = value.date()
    return value.isoformat()


class InvoiceXmlBuilder:
    def __init__(self, company: Any):
        self.company = company

    def build(self, invoice: Any) -> str:
        root = ET.Element(_q("fe:Invoice"))
        self._extensions(root, invoice)

        _sub(root, "cbc:UBLVersionID", "2.1")
        _sub(root, "cbc:CustomizationID", "10")
        _sub(root, "cbc:ProfileID", "DIAN 2.1")
        _sub(root, "cbc:ProfileExecutionID", "2")  # 2 = pruebas
        _sub(root, "cbc:ID", f"{invoice.prefix or ''}{invoice.number}")
        _sub(root, "cbc:UUID", invoice.cufe or "PENDIENTE", schemeID="2", schemeName="CUFE-SHA384")
        _sub(root, "cbc:IssueDate", _fmt_date(invoice.issue_date))
        _sub(root, "cbc:InvoiceTypeCode", "01")
        _sub(root, "cbc:DocumentCurrencyCode", "COP")

        self._supplier(root)
        self._customer(root, invoice)

        totals = _sub(root, "cac:LegalMonetaryTotal")
        _sub(totals, "cbc:PayableAmount", f"{float(invoice.total or 0):.2f}", currencyID="COP")

        return ET.tostring(root, encoding="unicode")

    def _extensions(self, root: ET.Element, invoice: Any) -> None:
        c = self.company
        exts = _sub(root, "ext:UBLExtensions")
        content = _sub(_sub(exts, "ext:UBLExtension"), "ext:ExtensionContent")
        dian = _sub(content, "sts:DianExtensions")

        control = _sub(dian, "sts:InvoiceControl")
        _sub(control, "sts:InvoiceAuthorization", c.authorization_number or "")
        period = _sub(control, "sts:AuthorizationPeriod")
        _sub(period, "cbc:StartDate", _fmt_date(c.authorization_date))
        authorized = _sub(control, "sts:AuthorizedInvoices")
        _sub(authorized, "sts:Prefix", c.authorization_prefix or invoice.prefix or "")
        _sub(authorized, "sts:From", c.authorization_range_from or "")
        _sub(authorized, "sts:To", c.authorization_range_to or "")

        provider = _sub(dian, "sts:SoftwareProvider")
        _sub(provider, "sts:ProviderID", c.nit, schemeID=c.dv or "", schemeName="31", **DIAN_AGENCY)
        _sub(provider, "sts:SoftwareID", SOFTWARE_ID, **DIAN_AGENCY)

    def _supplier(self, root: ET.Element) -> None:
        c = self.company
        party = _sub(_sub(root, "cac:AccountingSupplierParty"), "cac:Party")
        _sub(_sub(party, "cac:PartyIdentification"), "cbc:ID", c.nit, schemeID=c.dv or "", schemeName="31")
        _sub(_sub(party, "cac:PartyName"), "cbc:Name", c.name)
        scheme = _sub(party, "cac:PartyTaxScheme")
        _sub(scheme, "cbc:RegistrationName", c.name)
        _sub(scheme, "cbc:TaxLevelCode", c.tax_regime or "O-99")

    @staticmethod
    def _customer(root: ET.Element, invoice: Any) -> None:
        party = _sub(_sub(root, "cac:AccountingCustomerParty"), "cac:Party")
        _sub(_sub(party, "cac:PartyName"), "cbc:Name", invoice.customer_name)
        if invoice.customer_email:
            _sub(_sub(party, "cac:Contact"), "cbc:ElectronicMail", invoice.customer_email)
