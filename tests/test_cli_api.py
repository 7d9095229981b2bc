import json, logging, time
from concurrent.futures import ThreadPoolExecutor

import pytest
from fastapi.testclient import TestClient

from fheclinic import FheSimulator, FixedClock, ProtocolLog, SeededRandomness, SequenceIdentity
from fheclinic.api import create_app
from fheclinic.cli import main


@pytest.fixture(autouse=True)
def _restore_logging():
    # main() reconfigures the root logger
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def client():
    clock = FixedClock(1_767_225_600_000, step_ms=100)
    sim = FheSimulator(
        randomness=SeededRandomness(5),
        clock=clock,
        identity=SequenceIdentity(prefix="env"),
        scale=100,
    )
    app = create_app(simulator=sim, log=ProtocolLog(clock, SequenceIdentity(prefix="log")))
    return TestClient(app)


VITALS = {
    "heartRate": 110, "systolic": 150, "diastolic": 95,
    "temperature": 38, "oxygenSat": 90, "symptomSeverity": 40,
}


# ---------------------------------------------------------------- CLI

def test_cli_lwe_identity(capsys):
    assert main(["lwe", "-m", "40", "--scale", "100", "-s", "3"]) == 0
    ex = json.loads(capsys.readouterr().out)
    assert ex["message"] == 40
    assert ex["body"] == ex["dotProduct"] + ex["scaledMessage"] + ex["error"]
    assert ex["dotProduct"] == ex["mask"][0] + ex["mask"][2]

def test_cli_encrypt_scalar(capsys):
    assert main(["encrypt", "-v", "40", "-s", "1"]) == 0
    record = json.loads(capsys.readouterr().out)
    assert record["value"]["rawValue"] == 40
    assert record["value"]["state"] == "ENCRYPTED"
    assert record["value"]["id"] == "seed1-0001"
    assert len(record["stepByStepCalculation"]) == 7

def test_cli_encrypt_vitals_file(tmp_path, capsys):
    path = tmp_path / "vitals.json"
    path.write_text(json.dumps(VITALS), encoding="utf-8")
    assert main(["encrypt", "-V", str(path)]) == 0
    record = json.loads(capsys.readouterr().out)
    assert record["value"]["rawValue"] == VITALS
    assert record["metrics"]["dimension"] == "n=2048"

def test_cli_encrypt_needs_input(capsys):
    assert main(["encrypt"]) == 2

def test_cli_encrypt_bad_payload(tmp_path, capsys):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"heartRate": 80}), encoding="utf-8")
    assert main(["encrypt", "-V", str(path)]) == 1
    assert "INVALID PAYLOAD" in capsys.readouterr().err

def test_cli_demo_bad_vitals_file(tmp_path, capsys):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"heartRate": 80}), encoding="utf-8")
    assert main(["demo", "-V", str(path)]) == 1
    assert "INVALID PAYLOAD" in capsys.readouterr().err

def test_cli_lwe_rejects_out_of_range_message(capsys):
    assert main(["lwe", "-m", "1e306"]) == 1
    assert "INVALID PAYLOAD" in capsys.readouterr().err

def test_cli_demo_text(capsys):
    assert main(["demo", "-s", "7"]) == 0
    out = capsys.readouterr().out
    assert "HOSPITAL AUDIT LOG" in out
    assert "SPECIALIST (C)  <NN_INFERENCE>" in out
    assert "Diagnosis: 99" in out

def test_cli_demo_json(capsys):
    assert main(["demo", "-s", "7", "-j"]) == 0
    result = json.loads(capsys.readouterr().out)
    assert result["summary"]["diagnosisScore"] == 99
    assert result["summary"]["labDeviationScore"] == 53
    assert len(result["log"]) == 7
    assert result["decrypted"]["state"] == "DECRYPTED"

def test_cli_demo_commentary_without_key(monkeypatch, capsys):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)
    assert main(["demo", "-s", "7", "-j", "-c"]) == 0
    result = json.loads(capsys.readouterr().out)
    assert result["analysis"]["securityScore"] == 50
    assert set(result["agentMessages"].values()) == {"Processing encrypted stream..."}
    assert result["log"][-1]["source"] == "AUDITOR"

def test_cli_verify_exported_log(tmp_path, capsys):
    path = tmp_path / "log.json"
    assert main(["demo", "-s", "7", "-j", "-o", str(path)]) == 0
    capsys.readouterr()

    assert main(["verify-log", "-f", str(path)]) == 0
    assert "✓ VALID (7 entries)" in capsys.readouterr().out

def test_cli_verify_tampered_log(tmp_path, capsys):
    path = tmp_path / "log.json"
    main(["demo", "-s", "7", "-j", "-o", str(path)])
    capsys.readouterr()

    entries = json.loads(path.read_text(encoding="utf-8"))
    entries[2]["details"] = "Diagnosis skipped."
    path.write_text(json.dumps(entries), encoding="utf-8")

    assert main(["verify-log", "-f", str(path)]) == 1
    assert "✗ INVALID: HASH_MISMATCH at entry 2" in capsys.readouterr().out

def test_cli_verify_malformed_log(tmp_path, capsys):
    path = tmp_path / "log.json"
    path.write_text(json.dumps([{"id": "x"}]), encoding="utf-8")
    assert main(["verify-log", "-f", str(path)]) == 1
    assert "malformed log" in capsys.readouterr().out

def test_cli_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "verify-log" in capsys.readouterr().out


# ---------------------------------------------------------------- API

def test_api_encrypt_scalar(client):
    r = client.post("/encrypt", json={"value": 40})
    assert r.status_code == 200
    body = r.json()
    assert body["record"]["value"]["id"] == "env-0001"
    assert body["record"]["value"]["history"] == ["Initial Encryption"]
    assert body["logEntry"]["source"] == "PATIENT"
    assert body["logEntry"]["action"] == "ENCRYPT"
    assert body["logEntry"]["hash"].startswith("sha256:")

def test_api_scalar_chain(client):
    client.post("/encrypt", json={"value": 40})

    r = client.post("/envelopes/env-0001/diagnosis")
    assert r.status_code == 200
    assert r.json()["record"]["value"]["rawValue"] == 60

    r = client.post("/envelopes/env-0001/lab")
    assert r.json()["record"]["value"]["rawValue"] == 72   # 60 * 1.2

    r = client.post("/envelopes/env-0001/billing")
    assert r.json()["record"]["value"]["rawValue"] == 50

    r = client.post("/envelopes/env-0001/review")
    assert r.json()["logEntry"]["source"] == "HUMAN_DOCTOR"

    env = client.get("/envelopes/env-0001").json()
    assert env["rawValue"] == 50
    assert env["state"] == "PROCESSED"
    assert len(env["history"]) == 5

def test_api_vitals_billing_range(client):
    client.post("/encrypt", json={"value": VITALS})
    r = client.post("/envelopes/env-0001/billing")
    assert 150 <= r.json()["record"]["value"]["rawValue"] <= 199

def test_api_unknown_envelope(client):
    assert client.post("/envelopes/nope/diagnosis").status_code == 404
    assert client.get("/envelopes/nope").status_code == 404

def test_api_shape_errors(client):
    assert client.post("/encrypt", json={"value": "forty"}).status_code == 422
    assert client.post("/encrypt", json={"value": {"heartRate": 80}}).status_code == 422

    client.post("/encrypt", json={"value": {"income": 5}})
    assert client.post("/envelopes/env-0001/diagnosis").status_code == 422
    assert client.post("/envelopes/env-0001/lab").status_code == 422
    assert client.post("/envelopes/env-0001/billing").status_code == 200

def test_api_log_verify(client):
    client.post("/encrypt", json={"value": 40})
    client.post("/envelopes/env-0001/diagnosis")

    log = client.get("/log").json()
    assert [e["action"] for e in log] == ["ENCRYPT", "NN_INFERENCE"]

    verdict = client.get("/log/verify").json()
    assert verdict == {"valid": True, "entries": 2}

def test_api_encrypt_rejects_coerced_values(client):
    assert client.post("/encrypt", json={"value": True}).status_code == 422
    assert client.post("/encrypt", json={"value": "40"}).status_code == 422
    assert client.post("/encrypt", json={"value": {"heartRate": True}}).status_code == 422
    assert client.post("/encrypt", json={"value": 1e306}).status_code == 422
    assert client.get("/log").json() == []

class SlowSimulator(FheSimulator):
    def homomorphic_diagnosis(self, envelope):
        time.sleep(0.2)
        return super().homomorphic_diagnosis(envelope)

def test_api_concurrent_steps_on_one_chain():
    clock = FixedClock(1_767_225_600_000, step_ms=100)
    sim = SlowSimulator(
        randomness=SeededRandomness(5),
        clock=clock,
        identity=SequenceIdentity(prefix="env"),
        scale=100,
    )
    client = TestClient(create_app(simulator=sim, log=ProtocolLog(clock, SequenceIdentity(prefix="log"))))
    client.post("/encrypt", json={"value": 40})

    def step(_):
        return client.post("/envelopes/env-0001/diagnosis").status_code

    with ThreadPoolExecutor(max_workers=2) as pool:
        assert list(pool.map(step, range(2))) == [200, 200]

    env = client.get("/envelopes/env-0001").json()
    assert env["history"] == [
        "Initial Encryption",
        "Specialist Diagnosis (NN)",
        "Specialist Diagnosis (NN)",
    ]
    assert env["rawValue"] == 90   # 40 * 1.5 * 1.5
    assert [e["action"] for e in client.get("/log").json()] == ["ENCRYPT", "NN_INFERENCE", "NN_INFERENCE"]
    assert client.get("/log/verify").json()["valid"] is True
