"""Tests for the agent record shape and command payload validation."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from src.schemas.agent_schema import Agent, AgentFields, Partition, SessionRequest

PERSISTED_ROW = {
    "id": 2,
    "nome": "Carlos Souza",
    "numero": "Ramal 102",
    "status": False,
    "em_atendimento": True,
    "cliente_nome": "Roberto Dias",
    "cliente_numero": "(11) 99999-8888",
    "posicao_fila": 0,
    "inicio_atendimento": "2025-03-15T10:00:00+00:00",
    "fim_atendimento": None,
}


class TestPersistedRecord:
    def test_parses_column_names(self):
        agent = Agent.from_record(PERSISTED_ROW)
        assert agent.name == "Carlos Souza"
        assert agent.in_session is True
        assert agent.session_started_at == datetime(2025, 3, 15, 10, 0, tzinfo=timezone.utc)

    def test_round_trips_column_names(self):
        record = Agent.from_record(PERSISTED_ROW).to_record()
        assert set(record) == set(PERSISTED_ROW)
        assert record["cliente_nome"] == "Roberto Dias"
        assert record["inicio_atendimento"].startswith("2025-03-15T10:00:00")

    def test_record_without_id(self):
        record = Agent.from_record(PERSISTED_ROW).to_record(include_id=False)
        assert "id" not in record

    def test_naive_timestamp_is_treated_as_utc(self):
        row = {**PERSISTED_ROW, "inicio_atendimento": "2025-03-15T10:00:00"}
        assert Agent.from_record(row).session_started_at.tzinfo == timezone.utc

    def test_attribute_names_also_accepted(self):
        agent = Agent(id=1, name="Ana", contact_number="101")
        assert agent.partition == Partition.QUEUED

    def test_records_are_immutable(self):
        agent = Agent(id=1, name="Ana")
        with pytest.raises(ValidationError):
            agent.name = "Other"


class TestPartitionProperty:
    @pytest.mark.parametrize(
        "available,in_session,expected",
        [
            (True, False, Partition.QUEUED),
            (False, True, Partition.BUSY),
            (True, True, Partition.BUSY),
            (False, False, Partition.PAUSED),
        ],
    )
    def test_partition_from_flags(self, available, in_session, expected):
        agent = Agent(id=1, name="Ana", available=available, in_session=in_session)
        assert agent.partition == expected


class TestAgentFields:
    def test_only_provided_fields_reported(self):
        assert AgentFields(name="Ana Silva").provided() == {"name": "Ana Silva"}

    def test_explicit_none_is_not_provided(self):
        assert AgentFields(name="Ana", contact_number=None).provided() == {"name": "Ana"}

    def test_name_whitespace_collapsed(self):
        assert AgentFields(name="  Ana   Silva ").name == "Ana Silva"

    def test_name_too_short_rejected(self):
        with pytest.raises(ValidationError):
            AgentFields(name="A")

    def test_blank_contact_rejected(self):
        with pytest.raises(ValidationError):
            AgentFields(contact_number="   ")

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            AgentFields.model_validate({"name": "Ana", "queue_position": 1})

    def test_column_aliases_accepted(self):
        fields = AgentFields.model_validate({"nome": "Ana", "numero": "101", "status": False})
        assert fields.provided() == {"name": "Ana", "contact_number": "101", "available": False}


class TestSessionRequest:
    def test_contact_optional(self):
        assert SessionRequest(client_name="Roberto").client_contact is None

    def test_blank_contact_becomes_none(self):
        assert SessionRequest(client_name="Roberto", client_contact=" ").client_contact is None

    def test_valid_contact_kept_as_entered(self):
        req = SessionRequest(client_name="Roberto", client_contact="(11) 99999-8888")
        assert req.client_contact == "(11) 99999-8888"

    def test_short_contact_rejected(self):
        with pytest.raises(ValidationError):
            SessionRequest(client_name="Roberto", client_contact="123")

    def test_blank_client_name_rejected(self):
        with pytest.raises(ValidationError):
            SessionRequest(client_name="   ")
