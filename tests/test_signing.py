import logging
import stat
import subprocess

import pytest

from ocipack.signing import sign_artifact, sign_cosign, verify_artifact, verify_cosign

URL = "oci://localhost:5000/org/app:1.0.0"
IMAGE = "localhost:5000/org/app:1.0.0"


@pytest.fixture
def log():
    return logging.getLogger("ocipack-test-signing")


def _install_cosign(tmp_path, monkeypatch, exit_code=0):
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "cosign"
    script.write_text(
        "#!/bin/sh\n"
        'echo "args: $*"\n'
        'echo "diagnostic" >&2\n'
        f"exit {exit_code}\n"
    )
    script.chmod(script.stat().st_mode | stat.S_IEXEC | stat.S_IXGRP | stat.S_IXOTH)
    monkeypatch.setenv("PATH", str(bin_dir))


def _logged(caplog):
    return [r.getMessage() for r in caplog.records]


def test_sign_with_key(tmp_path, monkeypatch, log, caplog):
    _install_cosign(tmp_path, monkeypatch)
    with caplog.at_level(logging.INFO, logger=log.name):
        sign_artifact(log, "cosign", URL, "cosign.key")
    messages = _logged(caplog)
    assert f"cosign: args: sign --key cosign.key --yes {IMAGE}" in messages
    assert "cosign: diagnostic" in messages


def test_sign_keyless(tmp_path, monkeypatch, log, caplog):
    _install_cosign(tmp_path, monkeypatch)
    with caplog.at_level(logging.INFO, logger=log.name):
        sign_cosign(log, IMAGE, "")
    assert f"cosign: args: sign --yes {IMAGE}" in _logged(caplog)


def test_sign_failure_raises(tmp_path, monkeypatch, log):
    _install_cosign(tmp_path, monkeypatch, exit_code=3)
    with pytest.raises(subprocess.CalledProcessError) as info:
        sign_cosign(log, IMAGE, "cosign.key")
    assert info.value.returncode == 3


def test_sign_unsupported_provider(log):
    with pytest.raises(ValueError, match="signer not supported: notary"):
        sign_artifact(log, "notary", URL, "")


def test_verify_unsupported_provider(log):
    with pytest.raises(ValueError, match="verifier not supported: notary"):
        verify_artifact(log, "notary", URL, "", "", "", "", "")


def test_sign_invalid_url(log):
    with pytest.raises(ValueError, match="oci://"):
        sign_artifact(log, "cosign", IMAGE, "")


def test_missing_cosign(tmp_path, monkeypatch, log):
    empty = tmp_path / "empty"
    empty.mkdir()
    monkeypatch.setenv("PATH", str(empty))
    with pytest.raises(FileNotFoundError, match="executing cosign failed"):
        sign_cosign(log, IMAGE, "")


def test_verify_with_key(tmp_path, monkeypatch, log, caplog):
    _install_cosign(tmp_path, monkeypatch)
    with caplog.at_level(logging.INFO, logger=log.name):
        verify_artifact(log, "cosign", URL, "cosign.pub", "", "", "", "")
    assert f"cosign: args: verify --key cosign.pub {IMAGE}" in _logged(caplog)


def test_verify_keyless_arguments(tmp_path, monkeypatch, log, caplog):
    _install_cosign(tmp_path, monkeypatch)
    with caplog.at_level(logging.INFO, logger=log.name):
        verify_cosign(log, IMAGE, "", "someone@example.com", "",
                      "", "https://issuer.example.com/.*")
    expected = ("cosign: args: verify --certificate-identity someone@example.com "
                "--certificate-oidc-issuer-regexp https://issuer.example.com/.* " + IMAGE)
    assert expected in _logged(caplog)


def test_verify_keyless_requires_identity(tmp_path, monkeypatch, log):
    _install_cosign(tmp_path, monkeypatch)
    with pytest.raises(ValueError, match="--certificate-identity or"):
        verify_cosign(log, IMAGE, "", "", "", "https://issuer.example.com", "")


def test_verify_keyless_requires_issuer(tmp_path, monkeypatch, log):
    _install_cosign(tmp_path, monkeypatch)
    with pytest.raises(ValueError, match="--certificate-oidc-issuer or"):
        verify_cosign(log, IMAGE, "", "someone@example.com", "", "", "")


def test_verify_failure_raises(tmp_path, monkeypatch, log):
    _install_cosign(tmp_path, monkeypatch, exit_code=1)
    with pytest.raises(subprocess.CalledProcessError) as info:
        verify_cosign(log, IMAGE, "cosign.pub", "", "", "", "")
    assert info.value.returncode == 1