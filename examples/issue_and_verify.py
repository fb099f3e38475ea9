#!/usr/bin/env python3
"""
Certificate Lifecycle Example

This example demonstrates:
- Generating a signing keypair
- Issuing and anchoring a wipe certificate on a local NDJSON ledger
- Fetching the anchored record and aggregate statistics
- Verifying the original and a tampered certificate
- Validating the ledger hash chain
"""

import json
import tempfile
from pathlib import Path

from wipecert.anchor import FileAnchorGateway, validate_ledger
from wipecert.index import JsonFileIndex
from wipecert.service import CertificationService
from wipecert.tools.signing import generate_keypair


def demonstrate_certificate_lifecycle(workdir: Path) -> None:
    print("Wipe Certificate Lifecycle Example")
    print("=" * 40)

    signer = generate_keypair(workdir / "private.pem", workdir / "public.pem")
    ledger_path = workdir / "ledger.ndjson"
    service = CertificationService(
        signer,
        FileAnchorGateway(ledger_path, issuer="0xDemoIssuer"),
        JsonFileIndex(workdir / "cert_index.json"),
    )

    certificate = {
        "device": "Sample NVMe SSD",
        "method": "3-pass overwrite",
        "wipedBy": "op1",
        "wipedAt": "2024-01-01T09:00:00Z",
    }
    issued = service.issue("cert-001", certificate)
    print(f"Issued cert-001: digest {issued.cert_hash_hex[:16]}... tx {issued.tx_hash[:18]}...")

    print("Fetched:", json.dumps(service.fetch("cert-001").model_dump_wire()))
    print("Stats:", json.dumps(service.stats().model_dump_wire()))

    verdict = service.verify("cert-001", certificate, issued.signature_base64)
    print("Original certificate:", verdict.model_dump_wire())

    tampered = dict(certificate, wipedBy="someone-else")
    verdict = service.verify("cert-001", tampered, issued.signature_base64)
    print("Tampered certificate:", verdict.model_dump_wire())

    ok, bad_line = validate_ledger(ledger_path)
    print(f"Ledger chain valid: {ok}" + ("" if ok else f" (first bad line {bad_line})"))


if __name__ == "__main__":
    with tempfile.TemporaryDirectory() as tmp:
        demonstrate_certificate_lifecycle(Path(tmp))
