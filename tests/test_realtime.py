"""
Tests for the realtime channel.

``TestEventRouter`` drives the router directly with a recording
transport; ``TestWebSocketChannel`` runs the full ``/ws`` endpoint through
Starlette's ``TestClient``.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from ridelink.api.app import create_app
from ridelink.api.middleware import limiter
from ridelink.domain.enums import ActorType, BookingStatus


def _msg(event, **data):
    return {"event": event, "data": data}


class TestEventRouter:
    @pytest.mark.asyncio
    async def test_create_booking_uses_session_company(
        self, coordinator, transport, actors, connect, ride_details
    ):
        company = connect("company", actors["company"])
        vendor = connect("vendor", actors["vendor_a"])
        session = coordinator.registry.get(company)

        await coordinator.router.handle(session, _msg("create_booking_request", **ride_details))

        [ack] = transport.events(company, "booking_request_created")
        assert ack["sent_to_vendor_count"] == 1
        assert transport.events(vendor, "new_booking_request")

    @pytest.mark.asyncio
    async def test_invalid_payload_goes_to_sender_only(
        self, coordinator, transport, actors, connect
    ):
        company = connect("company", actors["company"])
        vendor = connect("vendor", actors["vendor_a"])

        await coordinator.router.handle(
            coordinator.registry.get(company), _msg("create_booking_request", pickup_location="A")
        )

        [error] = transport.events(company, "booking_request_error")
        assert error["code"] == "validation_error"
        assert error["details"]
        assert transport.events(vendor) == []

    @pytest.mark.asyncio
    async def test_unknown_event(self, coordinator, transport, connect):
        sid = connect("vendor", "v-x")
        await coordinator.router.handle(coordinator.registry.get(sid), _msg("fly"))
        [error] = transport.events(sid, "error")
        assert error["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_accept_and_status_flow(
        self, coordinator, transport, actors, connect, ride_details
    ):
        company = connect("company", actors["company"])
        vendor = connect("vendor", actors["vendor_a"])
        result = await coordinator.dispatcher.submit_booking_request(
            actors["company"], ride_details
        )
        vendor_session = coordinator.registry.get(vendor)

        await coordinator.router.handle(
            vendor_session, _msg("accept_booking_request", requestId=result.request_id)
        )
        assert transport.events(vendor, "booking_acceptance_confirmed")

        await coordinator.router.handle(
            vendor_session,
            _msg("update_ride_status", booking_id=result.booking_id, new_status="in_progress"),
        )
        [update] = transport.events(company, "ride_status_updated")
        assert update["new_status"] == "in_progress"
        assert update["updated_by"] == actors["vendor_a"]

        await coordinator.router.handle(
            vendor_session,
            _msg("update_ride_location", booking_id=result.booking_id, location="Pier 39"),
        )
        [moved] = transport.events(company, "ride_location_updated")
        assert moved["location"] == "Pier 39"

    @pytest.mark.asyncio
    async def test_accept_errors_use_booking_error(
        self, coordinator, transport, actors, connect
    ):
        vendor = connect("vendor", actors["vendor_a"])
        await coordinator.router.handle(
            coordinator.registry.get(vendor), _msg("accept_booking_request", request_id="req_gone")
        )
        [error] = transport.events(vendor, "booking_error")
        assert error["code"] == "offer_not_found"
        assert error["request_id"] == "req_gone"

    @pytest.mark.asyncio
    async def test_illegal_status_change_reports_ride_status_error(
        self, coordinator, transport, actors, connect, ride_details
    ):
        vendor = connect("vendor", actors["vendor_a"])
        result = await coordinator.dispatcher.submit_booking_request(
            actors["company"], ride_details
        )
        transport.clear()

        await coordinator.router.handle(
            coordinator.registry.get(vendor),
            _msg("update_ride_status", booking_id=result.booking_id, new_status="completed"),
        )

        assert transport.names(vendor) == ["ride_status_error"]
        [error] = transport.events(vendor, "ride_status_error")
        assert error["code"] == "invalid_transition"
        assert error["booking_id"] == result.booking_id

    @pytest.mark.asyncio
    async def test_status_change_to_accepted_by_non_partner(
        self, coordinator, transport, actors, connect, ride_details
    ):
        connect("vendor", actors["vendor_a"])
        outsider = connect("vendor", actors["vendor_c"])
        result = await coordinator.dispatcher.submit_booking_request(
            actors["company"], ride_details
        )

        await coordinator.router.handle(
            coordinator.registry.get(outsider),
            _msg("update_ride_status", booking_id=result.booking_id, new_status="accepted"),
        )

        [error] = transport.events(outsider, "ride_status_error")
        assert error["code"] == "validation_error"
        assert coordinator.offers.get(result.request_id).is_pending

    @pytest.mark.asyncio
    async def test_status_change_to_accepted_uses_session_vendor(
        self, coordinator, transport, actors, connect, ride_details
    ):
        vendor = connect("vendor", actors["vendor_a"])
        result = await coordinator.dispatcher.submit_booking_request(
            actors["company"], ride_details
        )

        await coordinator.router.handle(
            coordinator.registry.get(vendor),
            _msg("update_ride_status", booking_id=result.booking_id, new_status="accepted"),
        )

        assert transport.events(vendor, "booking_acceptance_confirmed")
        record = await coordinator.bookings.get_by_id(result.booking_id)
        assert record["vendor_id"] == actors["vendor_a"]

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_reported(
        self, coordinator, transport, actors, connect, monkeypatch
    ):
        vendor = connect("vendor", actors["vendor_a"])

        async def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(coordinator.acceptance, "reject", explode)
        await coordinator.router.handle(
            coordinator.registry.get(vendor), _msg("reject_booking_request", request_id="req_1")
        )
        [error] = transport.events(vendor, "booking_error")
        assert error["code"] == "internal_error"

    @pytest.mark.asyncio
    async def test_create_partnership_notifies_both_sides(
        self, coordinator, transport, actors, connect
    ):
        company = connect("company", actors["company"])
        vendor_c = connect("vendor", actors["vendor_c"])

        await coordinator.router.handle(
            coordinator.registry.get(company),
            _msg("create_partnership", company_id=actors["company"], vendor_id=actors["vendor_c"]),
        )

        assert transport.events(company, "partnership_creation_success")
        assert transport.events(company, "partnership_created")
        assert transport.events(vendor_c, "partnership_created")
        assert actors["vendor_c"] in await coordinator.resolver.active_vendor_partners(
            actors["company"]
        )

    @pytest.mark.asyncio
    async def test_dashboard_queries_use_session_identity(
        self, coordinator, transport, actors, connect
    ):
        company = connect("company", actors["company"])
        session = coordinator.registry.get(company)

        await coordinator.router.handle(session, _msg("get_user_current_partners"))
        await coordinator.router.handle(session, _msg("get_user_available_partners"))
        await coordinator.router.handle(session, _msg("get_user_ongoing_rides"))

        [current] = transport.events(company, "user_current_partners")
        assert current["count"] == 2
        [available] = transport.events(company, "user_available_partners")
        assert [u["id"] for u in available["available_partners"]] == [actors["vendor_c"]]
        assert available["partner_type"] == "vendors"
        [ongoing] = transport.events(company, "user_ongoing_rides")
        assert ongoing["count"] == 0

    @pytest.mark.asyncio
    async def test_query_failure_uses_query_error_event(
        self, coordinator, gateway, transport, actors, connect
    ):
        vendor = connect("vendor", actors["vendor_a"])
        gateway.fail("query", "bookings")
        await coordinator.router.handle(
            coordinator.registry.get(vendor), _msg("get_user_ongoing_rides")
        )
        [error] = transport.events(vendor, "user_ongoing_rides_error")
        assert error["code"] == "persistence_error"


@pytest.fixture
def client(gateway, settings):
    limiter.reset()
    app = create_app(gateway=gateway, config=settings)
    with TestClient(app) as test_client:
        yield test_client


def _register(client, user_type, email, name):
    name_field = "company_name" if user_type == "company" else "vendor_name"
    resp = client.post(
        "/api/v1/users", json={"email": email, "user_type": user_type, name_field: name}
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["user"]["id"]


class TestWebSocketChannel:
    def test_handshake_requires_identity(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws?actor_type=robot&actor_id=x"):
                pass
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws?actor_type=vendor"):
                pass

    def test_malformed_frames_get_error_events(self, client):
        with client.websocket_connect("/ws?actor_type=vendor&actor_id=v-1") as ws:
            ws.send_text("not json")
            assert ws.receive_json()["event"] == "error"
            ws.send_json({"event": "unknown_thing", "data": {}})
            reply = ws.receive_json()
            assert reply["event"] == "error"
            assert "Unknown event" in reply["data"]["error"]

    def test_disconnect_unregisters_session(self, client):
        registry = client.app.state.coordinator.registry
        with client.websocket_connect("/ws?actor_type=vendor&actor_id=v-1") as ws:
            ws.send_json({"event": "get_user_ongoing_rides"})
            ws.receive_json()
            assert registry.is_connected(ActorType.VENDOR, "v-1")
        assert not registry.is_connected(ActorType.VENDOR, "v-1")

    def test_booking_round_trip(self, client):
        vendor_id = _register(client, "vendor", "v@x.test", "City Cabs")
        company_id = _register(client, "company", "c@x.test", "Northwind")

        with client.websocket_connect(
            f"/ws?actor_type=vendor&actor_id={vendor_id}"
        ) as vendor_ws, client.websocket_connect(
            f"/ws?actor_type=company&actor_id={company_id}"
        ) as company_ws:
            company_ws.send_json(
                {
                    "event": "create_booking_request",
                    "data": {
                        "pickupLocation": "SFO Terminal 2",
                        "dropoffLocation": "Union Square",
                        "pickupTime": "2026-10-20T09:30:00Z",
                        "passengerCount": 2,
                    },
                }
            )
            offer = vendor_ws.receive_json()
            assert offer["event"] == "new_booking_request"
            request_id = offer["data"]["request_id"]
            ack = company_ws.receive_json()
            assert ack["event"] == "booking_request_created"
            assert ack["data"]["sent_to_vendor_count"] == 1

            vendor_ws.send_json(
                {"event": "accept_booking_request", "data": {"request_id": request_id}}
            )
            assert vendor_ws.receive_json()["event"] == "booking_acceptance_confirmed"
            update = company_ws.receive_json()
            assert update["event"] == "booking_status_update"
            assert update["data"]["vendor_id"] == vendor_id
            assert company_ws.receive_json()["event"] == "pending_rides_updated"
            assert company_ws.receive_json()["event"] == "ongoing_rides_updated"

        booking_id = update["data"]["booking_id"]
        booking = client.get(f"/api/v1/bookings/{booking_id}").json()
        assert booking["status"] == BookingStatus.ACCEPTED.value
        assert booking["vendor_id"] == vendor_id
