"""
FACTURADOR-DIAN — Module 1: CertificateSimulator
Generates RSA key pairs and synthetic signing certificates, and signs/verifies
XML payloads with them.

Educational only:
- The "certificate" is a plain record, not an X.509 structure.
- The XML signature is a base64 RSA/SHA-256 signature over the raw document,
  spliced in as <fe:Signature> right before </fe:Invoice>. It is NOT XAdES.
  The splicing lives behind the XmlSigner protocol so a real enveloped
  signature implementation can replace it without touching callers.
"""

import base64
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Optional, Protocol

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from facturador.core.exceptions import FacturadorError
from facturador.models.certificate import CertificateStatus
from facturador.utils.dian_helpers import add_years

logger = logging.getLogger(__name__)

SIMULATED_ISSUER = "Autoridad Certificadora Simulada (Educativa)"
INVOICE_CLOSING_TAG = "</fe:Invoice>"
_SIGNATURE_RE = re.compile(r"<fe:Signature>(.*?)</fe:Signature>", re.DOTALL)


class CertificateError(FacturadorError):
    """Raised when key generation or signing fails unexpectedly."""
    status_code = 500

    def __init__(self, message: str, code: str = "CERT_ERROR"):
        super().__init__(message, code)


class XmlSigner(Protocol):
    def sign(self, xml_content: str, private_key_pem: str) -> str: ...
    def verify(self, signed_xml: str, public_key_pem: str) -> bool: ...


class EnvelopeSigner:
    """
    String-splicing signer.

    sign():   SHA-256/RSA (PKCS#1 v1.5) over the UTF-8 bytes of the whole document,
              inserted as <fe:Signature>base64</fe:Signature> before the first
              </fe:Invoice>. Without that closing tag the document is returned
              unchanged.
    verify(): extracts the first <fe:Signature> block, removes it and checks
              the remaining document. Any failure yields False.
    """

    def sign(self, xml_content: str, private_key_pem: str) -> str:
        try:
            private_key = serialization.load_pem_private_key(
                private_key_pem.encode("utf-8"), password=None,
            )
            signature = private_key.sign(
                xml_content.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256(),
            )
        except Exception as e:
            logger.exception(f"Error signing XML: {e}")
            raise CertificateError(f"Error al firmar el XML: {str(e)}", code="SIGN_FAILED") from e

        if INVOICE_CLOSING_TAG not in xml_content:
            logger.warning("XML has no </fe:Invoice> closing tag; signature not inserted")
            return xml_content

        encoded = base64.b64encode(signature).decode("ascii")
        return xml_content.replace(
            INVOICE_CLOSING_TAG,
            f"<fe:Signature>{encoded}</fe:Signature>{INVOICE_CLOSING_TAG}",
            1,
        )

    def verify(self, signed_xml: str, public_key_pem: str) -> bool:
        try:
            match = _SIGNATURE_RE.search(signed_xml)
            if not match:
                return False
            signature = base64.b64decode(match.group(1), validate=True)
            content = signed_xml[:match.start()] + signed_xml[match.end():]

            public_key = serialization.load_pem_public_key(public_key_pem.encode("utf-8"))
            public_key.verify(signature, content.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256())
            return True
        except InvalidSignature:
            return False
        except Exception as e:
            logger.error(f"Error al verificar firma: {e}")
            return False


class CertificateSimulator:
    """
    Usage:
        simulator = CertificateSimulator()
        cert = simulator.generate_certificate("Acme S.A.S", "900123456")
        signed = simulator.sign_xml(xml, cert["private_key"])
        assert simulator.verify_signature(signed, cert["public_key"])
    """

    KEY_SIZE = 2048
    VALIDITY_YEARS = 1

    def __init__(self, signer: Optional[XmlSigner] = None):
        self.signer = signer or EnvelopeSigner()

    def generate_key_pair(self) -> dict[str, str]:
        """RSA-2048 pair as PEM text: public SPKI, private PKCS#8."""
        try:
            key = rsa.generate_private_key(public_exponent=65537, key_size=self.KEY_SIZE)
        except Exception as e:
            logger.exception(f"Error generating RSA key pair: {e}")
            raise CertificateError(f"Error al generar el par de claves: {str(e)}", code="KEYGEN_FAILED") from e

        private_pem = key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("utf-8")
        public_pem = key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("utf-8")
        return {"public_key": public_pem, "private_key": private_pem}

    def generate_certificate(self, company_name: str, nit: str) -> dict:
        """
        Build a certificate record valid for one year from now.
        Pure construction: persisting it is the caller's job.
        """
        keys = self.generate_key_pair()
        issue_date = datetime.now(timezone.utc)
        expiry_date = add_years(issue_date, self.VALIDITY_YEARS)

        certificate = {
            "name": f"Certificado Digital {company_name} (NIT {nit})",
            "public_key": keys["public_key"],
            "private_key": keys["private_key"],
            "issue_date": issue_date,
            "expiry_date": expiry_date,
            "serial_number": self._generate_serial_number(),
            "issuer": SIMULATED_ISSUER,
            "status": CertificateStatus.ACTIVE,
            "is_default": True,
        }
        logger.info(f"Simulated certificate generated: serial={certificate['serial_number']}, nit={nit}")
        return certificate

    def sign_xml(self, xml_content: str, private_key: str) -> str:
        return self.signer.sign(xml_content, private_key)

    def verify_signature(self, signed_xml: str, public_key: str) -> bool:
        return self.signer.verify(signed_xml, public_key)

    @staticmethod
    def _generate_serial_number() -> str:
        # UUID4 hex, hyphens stripped, uppercase (32 chars)
        return uuid.uuid4().hex.upper()
