"""
Tests for synchronous tool-call answers
"""

import pytest

from call_ingest.models.events import ToolCallRequest
from call_ingest.services.cache_service import CacheService
from call_ingest.services.tool_responses import ToolResponseBuilder, amount_to_words


def make_request(name, arguments=None, call_id="tc-1"):
    return ToolCallRequest.model_validate({
        "id": call_id,
        "function": {"name": name, "arguments": arguments or {}},
    })


class TestQuotes:
    """Price quotes"""

    def test_base_rate_outside_surcharge_zone(self, tool_builder):
        """Test debouchage in Montréal is quoted at the base rate"""
        result = tool_builder.build(make_request("getQuote", {"serviceType": "debouchage", "location": "Montréal"}))

        assert result["service"] == "debouchage"
        assert result["price"] == "trois cent cinquante dollars"
        assert result["message"] == "Le prix pour debouchage est trois cent cinquante dollars plus taxes."

    def test_surcharge_zone_adds_flat_fee(self, tool_builder):
        """Test a rive-sud location costs base plus surcharge"""
        result = tool_builder.build(make_request("getQuote", {"serviceType": "debouchage", "location": "Longueuil, Rive-Sud"}))

        assert result["price"] == "quatre cents dollars"

    def test_surcharge_from_postal_code(self, tool_builder):
        """Test a J postal code is a surcharge zone"""
        result = tool_builder.build(make_request("getQuote", {"serviceType": "inspection", "postalCode": "j4k 1a1"}))

        assert result["price"] == "cinq cents dollars"

    @pytest.mark.parametrize("service,price", [
        ("debouchage", "trois cent cinquante dollars"),
        ("nettoyage", "quatre cents dollars"),
        ("inspection", "quatre cent cinquante dollars"),
    ])
    def test_price_table(self, tool_builder, service, price):
        """Test quotes for each service"""
        result = tool_builder.build(make_request("getQuote", {"serviceType": service}))
        assert result["price"] == price
        assert price in result["message"]

    def test_unknown_service_quoted_at_default_rate(self, tool_builder):
        """Test an unknown service gets the default price"""
        result = tool_builder.build(make_request("getQuote", {"serviceType": "gainage"}))
        assert result["price"] == "trois cent cinquante dollars"

    def test_missing_service_type_defaults_to_debouchage(self, tool_builder):
        """Test a quote with no service type"""
        result = tool_builder.build(make_request("getQuote"))
        assert result["service"] == "debouchage"

    def test_identical_quotes_served_from_cache(self, tool_builder):
        """Test the second identical call is a cache hit with the same payload"""
        request = make_request("getQuote", {"serviceType": "nettoyage"})

        first = tool_builder.build(request)
        hits_before = tool_builder.cache.stats()["hits"]
        second = tool_builder.build(request)

        assert first == second
        assert tool_builder.cache.stats()["hits"] == hits_before + 1

    def test_warm_fills_every_quote(self):
        """Test warm-up makes the first live quote a hit"""
        cache = CacheService(max_size=50)
        builder = ToolResponseBuilder(cache)

        assert builder.warm() == 6
        builder.build(make_request("getQuote", {"serviceType": "inspection", "location": "rive-sud"}))

        assert cache.stats()["hits"] == 1
        assert cache.stats()["misses"] == 0

    def test_amount_to_words_falls_back_to_digits(self):
        """Test amounts missing from the words table"""
        assert amount_to_words(400) == "quatre cents"
        assert amount_to_words(999) == "999"


class TestOtherTools:
    """Availability, service area and informational tools"""

    def test_availability(self, tool_builder):
        """Test availability answer"""
        result = tool_builder.build(make_request("checkAvailability", {"date": "demain"}))

        assert result["available"] is True
        assert result["slots"] == ["9:00", "10:00", "14:00", "15:00", "16:00"]

    @pytest.mark.parametrize("postal_code,area,surcharge", [
        ("H7N 2K1", "Laval", False),
        ("H2X 1Y4", "Montréal", False),
        ("J4K 1A1", "Rive-Sud", True),
        ("G1R 4P5", "Grand Montréal", False),
    ])
    def test_service_area(self, tool_builder, postal_code, area, surcharge):
        """Test service area answer"""
        result = tool_builder.build(make_request("checkServiceArea", {"postalCode": postal_code}))

        assert result["serviced"] is True
        assert result["area"] == area
        assert result["surcharge"] is surcharge

    def test_company_info(self, tool_builder):
        """Test company info answer"""
        result = tool_builder.build(make_request("getCompanyInfo", {"infoType": "contact"}))

        assert result["info"]["phone"] == "438-900-4385"

    def test_company_info_unknown_type(self, tool_builder):
        """Test company info for an unknown info type"""
        result = tool_builder.build(make_request("getCompanyInfo", {"infoType": "prices"}))

        assert result["info"] == {}

    def test_service_details(self, tool_builder):
        """Test service details answer"""
        result = tool_builder.build(make_request("getServiceDetails", {"serviceType": "gainage"}))

        assert "gaine" in result["description"]
        assert result["guarantee"].startswith("25 ans")

    def test_sms_alert_ack_is_not_cached(self, tool_builder):
        """Test alerts are acknowledged without touching the cache"""
        result = tool_builder.build(make_request("sendSMSAlert", {"priority": "p1"}))

        assert result == {"priority": "P1", "queued": True, "message": "SMS P1 envoyé"}
        assert len(tool_builder.cache) == 0

    def test_unknown_function_gets_fallback(self, tool_builder):
        """Test an unknown function gets the generic answer"""
        result = tool_builder.build(make_request("bookTeleportation"))
        assert result == {"message": "Fonction disponible"}


class TestBatch:
    """Batches of tool calls"""

    def test_results_follow_request_order(self, tool_builder):
        """Test N requests give N results with ids preserved"""
        requests = [
            make_request("checkAvailability", call_id="first"),
            make_request("unknown", call_id="second"),
            make_request("getQuote", {"serviceType": "inspection"}, call_id="third"),
        ]

        results = tool_builder.build_all(requests)

        assert [r.tool_call_id for r in results] == ["first", "second", "third"]
        assert results[2].result["service"] == "inspection"
