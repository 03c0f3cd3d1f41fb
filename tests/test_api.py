"""
RadioTrack Backend — API Endpoint Tests
=========================================

End-to-end tests through the FastAPI app against a temporary SQLite
database. Notification channels are RecordingChannel fakes.

What we test:
    ✅ Create → ready → notified scenario, and no second SMS on repeat
    ✅ 404 for unknown patient / radiograph, nothing created
    ✅ 400 for invalid bodies and states, nothing persisted
    ✅ Filtered and "listas" views
    ✅ Failed notification keeps the state change and is retried later
    ✅ Status page and health check
"""

import pytest


async def create(client, body):
    response = await client.post("/api/pacientes", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def radiograph(patient_doc, code):
    return next(r for r in patient_doc["radiografias"] if r["idRadiografia"] == code)


class TestCreatePatient:

    @pytest.mark.asyncio
    async def test_create_returns_201_with_document(self, test_client, scenario_patient):
        response = await test_client.post("/api/pacientes", json=scenario_patient)

        assert response.status_code == 201
        body = response.json()
        assert body["idPaciente"] == "P1"
        assert body["nombre"] == "Ana"
        assert body["id"]
        r1 = radiograph(body, "R1")
        assert r1["estado"] == "pendiente"
        assert r1["notificado"] is False
        assert r1["fechaNotificacion"] is None

    @pytest.mark.asyncio
    async def test_missing_radiograph_id_rejected_and_not_persisted(
        self, test_client, scenario_patient
    ):
        del scenario_patient["radiografias"][0]["idRadiografia"]

        response = await test_client.post("/api/pacientes", json=scenario_patient)

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"
        assert "idRadiografia" in response.json()["message"]
        listing = await test_client.get("/api/pacientes")
        assert listing.json() == []

    @pytest.mark.asyncio
    async def test_unknown_state_rejected(self, test_client, scenario_patient):
        scenario_patient["radiografias"][0]["estado"] = "perdida"
        response = await test_client.post("/api/pacientes", json=scenario_patient)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_duplicate_patient_code_rejected(self, test_client, scenario_patient):
        await create(test_client, scenario_patient)

        response = await test_client.post("/api/pacientes", json=scenario_patient)

        assert response.status_code == 400
        assert "P1" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_email_with_line_break_rejected(self, test_client, scenario_patient):
        scenario_patient["email"] = "ana\n@example.org"

        response = await test_client.post("/api/pacientes", json=scenario_patient)

        assert response.status_code == 400
        assert "email" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_repeated_radiograph_code_rejected(self, test_client, scenario_patient):
        scenario_patient["radiografias"].append(
            {"idRadiografia": "R1", "tipo": "mano"}
        )
        response = await test_client.post("/api/pacientes", json=scenario_patient)
        assert response.status_code == 400


class TestReadPatients:

    @pytest.mark.asyncio
    async def test_list_and_get(self, test_client, scenario_patient):
        created = await create(test_client, scenario_patient)

        listing = await test_client.get("/api/pacientes")
        assert [p["idPaciente"] for p in listing.json()] == ["P1"]

        by_code = await test_client.get("/api/pacientes/P1")
        by_internal_id = await test_client.get(f"/api/pacientes/{created['id']}")
        assert by_code.status_code == 200
        assert by_internal_id.json()["idPaciente"] == "P1"

    @pytest.mark.asyncio
    async def test_internal_id_wins_over_lookalike_code(self, test_client, scenario_patient):
        first = await create(test_client, scenario_patient)
        await create(
            test_client,
            {"idPaciente": first["id"], "nombre": "Luis", "telefono": "+200"},
        )

        by_uuid = await test_client.get(f"/api/pacientes/{first['id']}")

        assert by_uuid.status_code == 200
        assert by_uuid.json()["idPaciente"] == "P1"
        assert len((await test_client.get("/api/pacientes")).json()) == 2

    @pytest.mark.asyncio
    async def test_get_unknown_patient_is_404(self, test_client):
        response = await test_client.get("/api/pacientes/NOPE")

        assert response.status_code == 404
        assert response.json()["message"] == "Paciente no encontrado"

    @pytest.mark.asyncio
    async def test_filter_by_state_and_ready_view(self, test_client, scenario_patient):
        scenario_patient["radiografias"].append(
            {"idRadiografia": "R2", "tipo": "mano", "estado": "lista"}
        )
        await create(test_client, scenario_patient)

        pending = await test_client.get("/api/pacientes/P1/radiografias?estado=pendiente")
        assert [r["idRadiografia"] for r in pending.json()] == ["R1"]

        everything = await test_client.get("/api/pacientes/P1/radiografias")
        assert [r["idRadiografia"] for r in everything.json()] == ["R1", "R2"]

        ready = await test_client.get("/api/pacientes/P1/radiografias-listas")
        body = ready.json()
        assert body["paciente"] == "Ana"
        assert body["total"] == 1
        assert body["radiografiasListas"][0]["idRadiografia"] == "R2"

    @pytest.mark.asyncio
    async def test_filter_with_unknown_state_is_400(self, test_client, scenario_patient):
        await create(test_client, scenario_patient)
        response = await test_client.get("/api/pacientes/P1/radiografias?estado=x")
        assert response.status_code == 400


class TestUpdateRadiographState:

    @pytest.mark.asyncio
    async def test_ready_scenario_sends_one_sms(
        self, test_client, scenario_patient, sms_channel, email_channel
    ):
        await create(test_client, scenario_patient)

        response = await test_client.put(
            "/api/pacientes/P1/radiografias/R1", json={"estado": "lista"}
        )

        assert response.status_code == 200
        r1 = radiograph(response.json(), "R1")
        assert r1["estado"] == "lista"
        assert r1["notificado"] is True
        assert r1["fechaNotificacion"] is not None
        assert sms_channel.sent == [
            ("+100", "Radiograph ready.", "Dear Ana, your torax radiograph is ready for review.")
        ]
        assert email_channel.sent == []

        # State and flag were committed, not only returned
        stored = await test_client.get("/api/pacientes/P1")
        assert radiograph(stored.json(), "R1")["notificado"] is True

    @pytest.mark.asyncio
    async def test_repeated_ready_does_not_notify_again(
        self, test_client, scenario_patient, sms_channel
    ):
        await create(test_client, scenario_patient)

        first = await test_client.put("/api/pacientes/P1/radiografias/R1", json={"estado": "lista"})
        stored = await test_client.get("/api/pacientes/P1")
        second = await test_client.put("/api/pacientes/P1/radiografias/R1", json={"estado": "lista"})

        assert first.status_code == 200
        assert second.status_code == 200
        assert len(sms_channel.sent) == 1
        assert radiograph(second.json(), "R1")["notificado"] is True
        assert (
            radiograph(second.json(), "R1")["fechaNotificacion"]
            == radiograph(stored.json(), "R1")["fechaNotificacion"]
        )

    @pytest.mark.asyncio
    async def test_non_ready_state_sends_nothing(self, test_client, scenario_patient, sms_channel):
        await create(test_client, scenario_patient)

        response = await test_client.put(
            "/api/pacientes/P1/radiografias/R1", json={"estado": "en_proceso"}
        )

        assert response.status_code == 200
        assert radiograph(response.json(), "R1")["estado"] == "en_proceso"
        assert sms_channel.sent == []

    @pytest.mark.asyncio
    async def test_radiograph_addressed_by_internal_id(
        self, test_client, scenario_patient, sms_channel
    ):
        created = await create(test_client, scenario_patient)
        internal_id = radiograph(created, "R1")["id"]

        response = await test_client.put(
            f"/api/pacientes/{created['id']}/radiografias/{internal_id}",
            json={"estado": "lista"},
        )

        assert response.status_code == 200
        assert len(sms_channel.sent) == 1

    @pytest.mark.asyncio
    async def test_unknown_patient_is_404_and_creates_nothing(self, test_client, sms_channel):
        response = await test_client.put(
            "/api/pacientes/P404/radiografias/R1", json={"estado": "lista"}
        )

        assert response.status_code == 404
        assert response.json()["message"] == "Paciente no encontrado"
        assert (await test_client.get("/api/pacientes")).json() == []
        assert sms_channel.sent == []

    @pytest.mark.asyncio
    async def test_unknown_radiograph_is_404(self, test_client, scenario_patient):
        await create(test_client, scenario_patient)

        response = await test_client.put(
            "/api/pacientes/P1/radiografias/R9", json={"estado": "lista"}
        )

        assert response.status_code == 404
        assert response.json()["message"] == "Radiografía no encontrada"

    @pytest.mark.asyncio
    async def test_invalid_state_is_400(self, test_client, scenario_patient):
        await create(test_client, scenario_patient)

        response = await test_client.put(
            "/api/pacientes/P1/radiografias/R1", json={"estado": "terminada"}
        )

        assert response.status_code == 400
        stored = await test_client.get("/api/pacientes/P1")
        assert radiograph(stored.json(), "R1")["estado"] == "pendiente"

    @pytest.mark.asyncio
    async def test_failed_sms_keeps_state_and_retries_next_time(
        self, test_client, scenario_patient, sms_channel
    ):
        await create(test_client, scenario_patient)
        sms_channel.fail_with = "gateway down"

        failed = await test_client.put(
            "/api/pacientes/P1/radiografias/R1", json={"estado": "lista"}
        )

        assert failed.status_code == 200
        r1 = radiograph(failed.json(), "R1")
        assert r1["estado"] == "lista"
        assert r1["notificado"] is False

        sms_channel.fail_with = None
        retried = await test_client.put(
            "/api/pacientes/P1/radiografias/R1", json={"estado": "lista"}
        )

        assert radiograph(retried.json(), "R1")["notificado"] is True
        assert len(sms_channel.sent) == 1

    @pytest.mark.asyncio
    async def test_both_preference_uses_both_channels(
        self, test_client, scenario_patient, sms_channel, email_channel
    ):
        scenario_patient["preferenciaNotificacion"] = "ambos"
        scenario_patient["email"] = "ana@example.org"
        await create(test_client, scenario_patient)

        await test_client.put("/api/pacientes/P1/radiografias/R1", json={"estado": "lista"})

        assert [s[0] for s in sms_channel.sent] == ["+100"]
        assert [s[0] for s in email_channel.sent] == ["ana@example.org"]

    @pytest.mark.asyncio
    async def test_crashing_email_channel_keeps_state_and_sms(
        self, test_client, scenario_patient, sms_channel, email_channel
    ):
        scenario_patient["preferenciaNotificacion"] = "ambos"
        scenario_patient["email"] = "ana@example.org"
        await create(test_client, scenario_patient)
        email_channel.crash_with = ValueError("Header values may not contain linefeed")

        response = await test_client.put(
            "/api/pacientes/P1/radiografias/R1", json={"estado": "lista"}
        )

        assert response.status_code == 200
        assert radiograph(response.json(), "R1")["estado"] == "lista"
        assert radiograph(response.json(), "R1")["notificado"] is True
        assert len(sms_channel.sent) == 1

        # Committed, and a repeat PUT does not text the patient again
        await test_client.put("/api/pacientes/P1/radiografias/R1", json={"estado": "lista"})
        stored = await test_client.get("/api/pacientes/P1")
        assert radiograph(stored.json(), "R1")["estado"] == "lista"
        assert len(sms_channel.sent) == 1

    @pytest.mark.asyncio
    async def test_crashing_only_channel_still_returns_200(
        self, test_client, scenario_patient, sms_channel
    ):
        await create(test_client, scenario_patient)
        sms_channel.crash_with = RuntimeError("connection reset")

        response = await test_client.put(
            "/api/pacientes/P1/radiografias/R1", json={"estado": "lista"}
        )

        assert response.status_code == 200
        r1 = radiograph(response.json(), "R1")
        assert r1["estado"] == "lista"
        assert r1["notificado"] is False


class TestRadiographCollection:

    @pytest.mark.asyncio
    async def test_add_radiograph_appends_in_order(self, test_client, scenario_patient):
        await create(test_client, scenario_patient)

        response = await test_client.post(
            "/api/pacientes/P1/radiografias",
            json={"idRadiografia": "R2", "tipo": "rodilla", "fecha": "2026-10-01"},
        )

        assert response.status_code == 201
        codes = [r["idRadiografia"] for r in response.json()["radiografias"]]
        assert codes == ["R1", "R2"]
        assert radiograph(response.json(), "R2")["fecha"] == "2026-10-01"

    @pytest.mark.asyncio
    async def test_add_duplicate_radiograph_is_400(self, test_client, scenario_patient):
        await create(test_client, scenario_patient)

        response = await test_client.post(
            "/api/pacientes/P1/radiografias",
            json={"idRadiografia": "R1", "tipo": "torax"},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_delete_patient(self, test_client, scenario_patient):
        await create(test_client, scenario_patient)

        response = await test_client.delete("/api/pacientes/P1")

        assert response.status_code == 204
        assert (await test_client.get("/api/pacientes/P1")).status_code == 404


class TestPagesAndHealth:

    @pytest.mark.asyncio
    async def test_status_page_form(self, test_client):
        response = await test_client.get("/")

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "idPaciente" in response.text

    @pytest.mark.asyncio
    async def test_status_page_lookup(self, test_client, scenario_patient):
        await create(test_client, scenario_patient)

        response = await test_client.get("/", params={"idPaciente": "P1"})

        assert response.status_code == 200
        assert "Ana" in response.text
        assert "R1" in response.text

    @pytest.mark.asyncio
    async def test_status_page_unknown_patient(self, test_client):
        response = await test_client.get("/", params={"idPaciente": "P404"})

        assert response.status_code == 404
        assert "Paciente no encontrado" in response.text

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["database"] == "connected"
        assert response.json()["notifications"] == "console"

    @pytest.mark.asyncio
    async def test_request_id_header_echoed(self, test_client):
        response = await test_client.get("/api/pacientes", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"
