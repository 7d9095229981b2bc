"""
HTTP API for the FHE clinic simulation.

Endpoints:
    POST /encrypt                          wrap a value in a new envelope
    POST /envelopes/{id}/diagnosis         specialist diagnosis
    POST /envelopes/{id}/lab               lab analysis
    POST /envelopes/{id}/billing           billing
    POST /envelopes/{id}/review            human doctor approval
    GET  /envelopes/{id}                   latest envelope of a chain
    GET  /log                              protocol log export
    GET  /log/verify                       hash chain check

Each chain is stored by envelope id and replaced by the latest envelope
after every step; steps on one chain run one at a time. Storage is
in-memory and per process.
"""

import threading
from typing import Any, Callable, Dict, Optional, Union

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, StrictFloat, StrictInt

from .audit import AuditRecord
from .config import is_production
from .envelope import Envelope
from .errors import PayloadShapeError
from .participants import AgentRole
from .protocol_log import ProtocolLog
from .simulator import FheSimulator


class EncryptRequest(BaseModel):
    # Booleans and numeric strings are rejected, not coerced
    value: Union[StrictInt, StrictFloat, Dict[str, Any]]


class EnvelopeStore:
    """Latest envelope per chain id, with one lock per chain."""

    def __init__(self):
        self._envelopes: Dict[str, Envelope] = {}
        self._chain_locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def chain_lock(self, envelope_id: str) -> threading.Lock:
        """Held across load, transform, store and log append for one chain."""
        with self._lock:
            return self._chain_locks.setdefault(envelope_id, threading.Lock())

    def put(self, envelope: Envelope) -> None:
        with self._lock:
            self._envelopes[envelope.id] = envelope

    def get(self, envelope_id: str) -> Optional[Envelope]:
        with self._lock:
            return self._envelopes.get(envelope_id)


def create_app(
    simulator: Optional[FheSimulator] = None,
    log: Optional[ProtocolLog] = None
) -> FastAPI:
    sim = simulator or FheSimulator()
    protocol_log = log or ProtocolLog(sim.clock, sim.identity)
    store = EnvelopeStore()

    app = FastAPI(
        title="FHE Clinic Simulation",
        docs_url=None if is_production() else "/docs",
        redoc_url=None,
    )
    app.state.simulator = sim
    app.state.protocol_log = protocol_log
    app.state.store = store

    def _load(envelope_id: str) -> Envelope:
        envelope = store.get(envelope_id)
        if envelope is None:
            raise HTTPException(404, "ENVELOPE_NOT_FOUND")
        return envelope

    def _apply(
        envelope_id: str,
        operation: Callable[[Envelope], AuditRecord],
        source: AgentRole,
        action: str
    ) -> Dict[str, Any]:
        with store.chain_lock(envelope_id):
            envelope = _load(envelope_id)
            try:
                record = operation(envelope)
            except PayloadShapeError as e:
                raise HTTPException(422, str(e))
            store.put(record.target)
            entry = protocol_log.record_operation(source, action, record)
        return {"record": record.to_dict(), "logEntry": entry.to_dict()}

    @app.post("/encrypt")
    def encrypt(req: EncryptRequest):
        try:
            record = sim.encrypt_value(req.value)
        except PayloadShapeError as e:
            raise HTTPException(422, str(e))
        store.put(record.target)
        entry = protocol_log.record_operation(AgentRole.PATIENT, "ENCRYPT", record)
        return {"record": record.to_dict(), "logEntry": entry.to_dict()}

    @app.post("/envelopes/{envelope_id}/diagnosis")
    def diagnosis(envelope_id: str):
        return _apply(envelope_id, sim.homomorphic_diagnosis, AgentRole.SPECIALIST, "NN_INFERENCE")

    @app.post("/envelopes/{envelope_id}/lab")
    def lab(envelope_id: str):
        return _apply(envelope_id, sim.homomorphic_lab_analysis, AgentRole.MEDICAL_LAB, "STAT_ANALYSIS")

    @app.post("/envelopes/{envelope_id}/billing")
    def billing(envelope_id: str):
        return _apply(envelope_id, sim.homomorphic_billing, AgentRole.BILLING, "GENERATE_BILL")

    @app.post("/envelopes/{envelope_id}/review")
    def review(envelope_id: str):
        return _apply(envelope_id, sim.human_doctor_review, AgentRole.HUMAN_DOCTOR, "APPROVE")

    @app.get("/envelopes/{envelope_id}")
    def get_envelope(envelope_id: str):
        return _load(envelope_id).to_dict()

    @app.get("/log")
    def export_log():
        return protocol_log.to_list()

    @app.get("/log/verify")
    def verify_log():
        return protocol_log.verify().to_dict()

    return app


app = create_app()
