"""Signing and verification of artifacts with cosign."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess

from .reference import parse_artifact_ref


def sign_artifact(log: logging.Logger, provider: str, oci_url: str, key_ref: str) -> None:
    """Sign the artifact with the given provider."""
    ref = parse_artifact_ref(oci_url)
    if provider != "cosign":
        raise ValueError(f"signer not supported: {provider}")
    sign_cosign(log, str(ref), key_ref)


def verify_artifact(log: logging.Logger, provider: str, oci_url: str, key_ref: str,
                    cert_identity: str, cert_identity_regexp: str,
                    cert_oidc_issuer: str, cert_oidc_issuer_regexp: str) -> None:
    """Verify the artifact with the given provider."""
    ref = parse_artifact_ref(oci_url)
    if provider != "cosign":
        raise ValueError(f"verifier not supported: {provider}")
    verify_cosign(log, str(ref), key_ref, cert_identity, cert_identity_regexp,
                  cert_oidc_issuer, cert_oidc_issuer_regexp)


def _cosign() -> str:
    executable = shutil.which("cosign")
    if executable is None:
        raise FileNotFoundError("executing cosign failed: cosign executable not found in PATH")
    return executable


def sign_cosign(log: logging.Logger, image_ref: str, key_ref: str) -> None:
    """Sign an image with a cosign private key, or keyless when no key is given."""
    args = [_cosign(), "sign"]
    if key_ref:
        args += ["--key", key_ref]
    args += ["--yes", image_ref]
    _run(log, args)


def verify_cosign(log: logging.Logger, image_ref: str, key_ref: str,
                  cert_identity: str, cert_identity_regexp: str,
                  cert_oidc_issuer: str, cert_oidc_issuer_regexp: str) -> None:
    """Verify an image with a cosign public key, or keyless with certificate constraints."""
    args = [_cosign(), "verify"]
    if key_ref:
        args += ["--key", key_ref]
    else:
        if not cert_identity and not cert_identity_regexp:
            raise ValueError("--certificate-identity or --certificate-identity-regexp is "
                             "required for Cosign verification in keyless mode")
        if cert_identity:
            args += ["--certificate-identity", cert_identity]
        if cert_identity_regexp:
            args += ["--certificate-identity-regexp", cert_identity_regexp]
        if not cert_oidc_issuer and not cert_oidc_issuer_regexp:
            raise ValueError("--certificate-oidc-issuer or --certificate-oidc-issuer-regexp is "
                             "required for Cosign verification in keyless mode")
        if cert_oidc_issuer:
            args += ["--certificate-oidc-issuer", cert_oidc_issuer]
        if cert_oidc_issuer_regexp:
            args += ["--certificate-oidc-issuer-regexp", cert_oidc_issuer_regexp]
    args.append(image_ref)
    _run(log, args)


def _run(log: logging.Logger, args: list[str]) -> None:
    """Run cosign, logging each line of its output, and raise if it fails."""
    try:
        proc = subprocess.Popen(args, env=os.environ.copy(), stdout=subprocess.PIPE,
                                stderr=subprocess.STDOUT, text=True, errors="replace")
    except OSError as err:
        raise OSError(f"executing cosign failed: {err}") from err
    with proc:
        assert proc.stdout is not None
        for line in proc.stdout:
            log.info("cosign: " + line.rstrip("\r\n"))
    if proc.returncode != 0:
        raise subprocess.CalledProcessError(proc.returncode, args)