import asyncio

import httpx
import pytest

from conftest import BENGALURU, FakeIpClient, FakeReverseGeocoder
from carefinder.domain import Coordinate, LocationRecord, LocationSource
from carefinder.errors import CollaboratorFailure, CollaboratorTimeout
from carefinder.services.cache import TTLCache
from carefinder.services.geoclients import (
    ForwardGeocoder,
    GeoLookup,
    IpGeolocationClient,
    Place,
    ReverseGeocoder,
)
from carefinder.services.location import DEFAULT_LOCATION, LocationResolver, is_public_ip


MUMBAI = GeoLookup(Coordinate(19.076, 72.8777), Place("Mumbai", "Maharashtra", "India"))


def test_explicit_coordinates_win():
    ip_client = FakeIpClient(result=MUMBAI)
    resolver = LocationResolver(ip_client=ip_client)

    location = asyncio.run(resolver.resolve_location(explicit_coords=BENGALURU, ip_address="8.8.8.8"))

    assert location.source == LocationSource.EXPLICIT
    assert location.coordinates == BENGALURU
    assert ip_client.calls == []


def test_public_ip_is_geolocated():
    resolver = LocationResolver(ip_client=FakeIpClient(result=MUMBAI))
    location = asyncio.run(resolver.resolve_location(ip_address="8.8.8.8"))

    assert location.source == LocationSource.IP_GEOLOCATION
    assert location.city == "Mumbai"
    assert location.region == "Maharashtra"


@pytest.mark.parametrize("ip", [None, "", "127.0.0.1", "10.1.2.3", "192.168.0.10", "::1", "testclient"])
def test_local_or_missing_ip_uses_default_without_lookup(ip):
    ip_client = FakeIpClient(result=MUMBAI)
    resolver = LocationResolver(ip_client=ip_client)

    location = asyncio.run(resolver.resolve_location(ip_address=ip))

    assert location == DEFAULT_LOCATION
    assert location.source == LocationSource.DEFAULT_FALLBACK
    assert ip_client.calls == []


@pytest.mark.parametrize(
    "ip_client",
    [
        FakeIpClient(error=CollaboratorFailure("rate limited", "ip-geolocation", 429)),
        FakeIpClient(error=RuntimeError("boom")),
        FakeIpClient(result=MUMBAI, delay=1.0),
    ],
)
def test_geolocation_failure_falls_back_to_default(ip_client):
    resolver = LocationResolver(ip_client=ip_client, timeout_seconds=0.05)
    location = asyncio.run(resolver.resolve_location(ip_address="8.8.8.8"))

    assert location.source == LocationSource.DEFAULT_FALLBACK
    assert location.coordinates == Coordinate(12.9716, 77.5946)


def test_default_location_is_bengaluru():
    assert DEFAULT_LOCATION.city == "Bengaluru"
    assert DEFAULT_LOCATION.coordinates == BENGALURU


def test_enrich_fills_place_from_reverse_geocoder():
    reverse = FakeReverseGeocoder(place=Place("Bengaluru", "Karnataka", "India"))
    resolver = LocationResolver(reverse_geocoder=reverse)
    explicit = LocationRecord(coordinates=BENGALURU, source=LocationSource.EXPLICIT)

    enriched = asyncio.run(resolver.enrich(explicit))

    assert enriched.city == "Bengaluru"
    assert enriched.region == "Karnataka"
    assert enriched.source == LocationSource.REVERSE_GEOCODE
    assert enriched.coordinates == BENGALURU


def test_enrich_keeps_location_when_geocoder_fails():
    resolver = LocationResolver(
        reverse_geocoder=FakeReverseGeocoder(place=Place("X"), delay=1.0), reverse_timeout_seconds=0.05
    )
    explicit = LocationRecord(coordinates=BENGALURU, source=LocationSource.EXPLICIT)
    assert asyncio.run(resolver.enrich(explicit)) == explicit

    resolver = LocationResolver(reverse_geocoder=FakeReverseGeocoder(error=CollaboratorFailure("no address", "reverse-geocode")))
    assert asyncio.run(resolver.enrich(explicit)) == explicit


def test_enrich_skips_lookup_when_place_known():
    reverse = FakeReverseGeocoder(place=Place("Elsewhere", "Nowhere"))
    resolver = LocationResolver(reverse_geocoder=reverse)

    assert asyncio.run(resolver.enrich(DEFAULT_LOCATION)) == DEFAULT_LOCATION
    assert reverse.calls == []


def test_is_public_ip():
    assert is_public_ip("8.8.8.8")
    assert is_public_ip("2001:4860:4860::8888")
    assert not is_public_ip("::ffff:127.0.0.1")
    assert not is_public_ip("169.254.1.1")
    assert not is_public_ip("not-an-ip")


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_ip_client_parses_payload_and_caches():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(
            200,
            json={"latitude": 12.97, "longitude": 77.59, "city": "Bengaluru", "region": "Karnataka", "country_name": "India"},
        )

    async def scenario():
        async with _client(handler) as client:
            ip_client = IpGeolocationClient("https://ipapi.test", client=client, cache=TTLCache())
            first = await ip_client.lookup("8.8.8.8")
            second = await ip_client.lookup("8.8.8.8")
        return first, second

    first, second = asyncio.run(scenario())
    assert first == second
    assert first.coordinates == Coordinate(12.97, 77.59)
    assert first.place == Place("Bengaluru", "Karnataka", "India")
    assert seen == ["/8.8.8.8/json/"]


def test_ip_client_error_payload_is_failure():
    def handler(request):
        return httpx.Response(200, json={"error": True, "reason": "RateLimited"})

    async def scenario():
        async with _client(handler) as client:
            await IpGeolocationClient("https://ipapi.test", client=client).lookup("8.8.8.8")

    with pytest.raises(CollaboratorFailure, match="RateLimited"):
        asyncio.run(scenario())


def test_http_error_status_is_failure():
    def handler(request):
        return httpx.Response(503, text="unavailable")

    async def scenario():
        async with _client(handler) as client:
            await IpGeolocationClient("https://ipapi.test", client=client).lookup("8.8.8.8")

    with pytest.raises(CollaboratorFailure) as info:
        asyncio.run(scenario())
    assert info.value.status_code == 503
    assert info.value.collaborator == "ip-geolocation"


def test_transport_timeout_is_collaborator_timeout():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    async def scenario():
        async with _client(handler) as client:
            await ReverseGeocoder("https://geo.test/reverse", client=client).reverse(BENGALURU)

    with pytest.raises(CollaboratorTimeout):
        asyncio.run(scenario())


def test_reverse_geocoder_reads_town_and_state():
    def handler(request):
        assert request.url.params["format"] == "json"
        return httpx.Response(200, json={"address": {"town": "Hoskote", "state": "Karnataka", "country": "India"}})

    async def scenario():
        async with _client(handler) as client:
            return await ReverseGeocoder("https://geo.test/reverse", client=client).reverse(BENGALURU)

    assert asyncio.run(scenario()) == Place("Hoskote", "Karnataka", "India")


def test_reverse_geocoder_without_address_is_failure():
    def handler(request):
        return httpx.Response(200, json={"error": "Unable to geocode"})

    async def scenario():
        async with _client(handler) as client:
            await ReverseGeocoder("https://geo.test/reverse", client=client).reverse(Coordinate(0.5, -30.0))

    with pytest.raises(CollaboratorFailure):
        asyncio.run(scenario())


def test_forward_geocoder_returns_first_match_or_none():
    def handler(request):
        if request.url.params["q"].startswith("Nowhere"):
            return httpx.Response(200, json=[])
        return httpx.Response(200, json=[{"lat": "12.93", "lon": "77.62", "address": {"city": "Bengaluru"}}])

    async def scenario():
        async with _client(handler) as client:
            geocoder = ForwardGeocoder("https://geo.test/search", client=client)
            return await geocoder.search("Koramangala, Bengaluru"), await geocoder.search("Nowhere at all")

    found, missing = asyncio.run(scenario())
    assert found.coordinates == Coordinate(12.93, 77.62)
    assert found.place.city == "Bengaluru"
    assert missing is None
