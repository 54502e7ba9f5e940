"""
Tests for the metadata providers with the transport mocked out.
"""
import asyncio

import pytest
from unittest.mock import AsyncMock, Mock

from gamescout.controllers.rate_limit import RateLimitCoordinator
from gamescout.errors import AuthenticationError, NetworkError, ProviderError, RateLimitedError
from gamescout.metadata.igdb import (
    IGDBProvider,
    TOKEN_SAFETY_MARGIN,
    TWITCH_TOKEN_URL,
    format_age_rating,
    image_url,
)
from gamescout.metadata.rawg import RAWGProvider
from gamescout.metadata.steam import SteamProvider
from gamescout.metadata.steamgriddb import SteamGridDBProvider, select_best_image
from gamescout.utils.http import HttpClient, looks_like_invalid_key
from gamescout.utils.retry import RetryPolicy


class PassthroughCoordinator:
    """Runs requests immediately and records the service tags."""

    def __init__(self):
        self.services = []

    async def queue_request(self, service, execute):
        self.services.append(service)
        return await execute()


@pytest.fixture
def coordinator():
    return PassthroughCoordinator()


@pytest.fixture
def no_wait_policy():
    return RetryPolicy(base_delay=0.0, max_delay=0.0)


@pytest.mark.asyncio
async def test_auth_failure_disables_provider(coordinator):
    http = Mock()
    http.get_json = AsyncMock(side_effect=AuthenticationError("rawg rejected credentials (401)", "rawg", 401))
    provider = RAWGProvider(coordinator, {'api_key': 'bad'}, http=http)

    assert await provider.is_available() == True
    with pytest.raises(AuthenticationError):
        await provider.search("Celeste")

    assert await provider.is_available() == False
    assert await provider.search("Celeste") == []
    assert await provider.get_description("rawg-1") is None
    assert http.get_json.await_count == 1


@pytest.mark.asyncio
async def test_rate_limit_does_not_disable(coordinator):
    http = Mock()
    http.get_json = AsyncMock(side_effect=RateLimitedError("rawg rate limit hit", "rawg", 429))
    provider = RAWGProvider(coordinator, {'api_key': 'key'}, http=http)

    with pytest.raises(RateLimitedError):
        await provider.search("Celeste")
    assert await provider.is_available() == True
    assert http.get_json.await_count == 1


@pytest.mark.asyncio
async def test_network_errors_are_retried(coordinator, no_wait_policy):
    http = Mock()
    http.get_json = AsyncMock(side_effect=[
        NetworkError("reset"),
        {'results': [{'id': 1, 'name': 'Celeste', 'released': '2018-01-25'}]},
    ])
    provider = RAWGProvider(coordinator, {'api_key': 'key'}, http=http, retry_policy=no_wait_policy)

    results = await provider.search("Celeste")

    assert [r.id for r in results] == ['rawg-1']
    assert results[0].release_date == '2018-01-25'
    assert coordinator.services == ['rawg', 'rawg']


@pytest.mark.asyncio
async def test_missing_credentials_make_provider_unavailable(coordinator):
    http = Mock()
    http.get_json = AsyncMock()
    for provider in (RAWGProvider(coordinator, http=http),
                     SteamGridDBProvider(coordinator, http=http),
                     IGDBProvider(coordinator, {'client_id': 'only-id'}, http=http)):
        assert await provider.is_available() == False
        assert await provider.search("Celeste") == []
    http.get_json.assert_not_awaited()


@pytest.mark.asyncio
async def test_rawg_description_and_artwork_share_details(coordinator):
    details = {
        'id': 1,
        'name': 'Celeste',
        'description': '<p>Help Madeline survive.</p>',
        'description_raw': 'Help Madeline survive.',
        'released': '2018-01-25',
        'rating': 4.5,
        'metacritic': None,
        'genres': [{'name': 'Platformer'}],
        'developers': [{'name': 'Maddy Makes Games'}],
        'background_image': 'https://media.rawg.io/celeste.jpg',
    }
    http = Mock()
    http.get_json = AsyncMock(side_effect=[details, {'results': [{'image': 'https://media.rawg.io/s1.jpg'}]}])
    provider = RAWGProvider(coordinator, {'api_key': 'key'}, http=http)

    description = await provider.get_description('rawg-1')
    artwork = await provider.get_artwork('rawg-1')

    assert description.description == 'Help Madeline survive.'
    assert description.rating == 90.0
    assert description.genres == ['Platformer']
    assert artwork.banner_url == 'https://media.rawg.io/celeste.jpg'
    assert artwork.screenshots == ['https://media.rawg.io/s1.jpg']
    assert http.get_json.await_count == 2


@pytest.mark.asyncio
async def test_foreign_ids_are_ignored(coordinator):
    http = Mock()
    http.get_json = AsyncMock()
    provider = RAWGProvider(coordinator, {'api_key': 'key'}, http=http)
    assert await provider.get_description('igdb-1942') is None
    http.get_json.assert_not_awaited()


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def igdb_http(token_calls):
    async def post_json(url, data=None, params=None, headers=None):
        if url == TWITCH_TOKEN_URL:
            token_calls.append(params)
            return {'access_token': f"token-{len(token_calls)}", 'expires_in': 3600}
        return [{'id': 1942, 'name': 'The Witcher 3: Wild Hunt',
                 'external_games': [{'category': 1, 'uid': '292030'}]}]

    http = Mock()
    http.post_json = AsyncMock(side_effect=post_json)
    return http


@pytest.mark.asyncio
async def test_igdb_token_is_cached_until_margin(coordinator):
    token_calls = []
    clock = FakeClock()
    provider = IGDBProvider(coordinator, {'client_id': 'id', 'client_secret': 'secret'},
                            http=igdb_http(token_calls), clock=clock)

    assert await provider.get_access_token() == 'token-1'
    assert await provider.get_access_token() == 'token-1'
    assert len(token_calls) == 1

    clock.now += 3600 - TOKEN_SAFETY_MARGIN - 1
    assert await provider.get_access_token() == 'token-1'

    clock.now += 2
    assert await provider.get_access_token() == 'token-2'
    assert token_calls[0]['grant_type'] == 'client_credentials'


@pytest.mark.asyncio
async def test_igdb_search_by_steam_id(coordinator):
    token_calls = []
    http = igdb_http(token_calls)
    provider = IGDBProvider(coordinator, {'client_id': 'id', 'client_secret': 'secret'}, http=http)

    results = await provider.search("The Witcher 3", steam_app_id="292030")

    assert len(results) == 1
    assert results[0].id == 'igdb-1942'
    assert results[0].steam_app_id == '292030'
    query = http.post_json.await_args_list[-1].kwargs['data']
    assert 'external_games.uid = "292030"' in query
    headers = http.post_json.await_args_list[-1].kwargs['headers']
    assert headers['Authorization'] == 'Bearer token-1'
    assert headers['Client-ID'] == 'id'


@pytest.mark.asyncio
async def test_igdb_missing_token_is_provider_error(coordinator):
    http = Mock()
    http.post_json = AsyncMock(return_value={'message': 'nope'})
    provider = IGDBProvider(coordinator, {'client_id': 'id', 'client_secret': 'secret'}, http=http)
    with pytest.raises(ProviderError):
        await provider.get_access_token()


def test_igdb_helpers():
    assert image_url("//images.igdb.com/igdb/image/upload/t_thumb/co1r7f.jpg", "t_cover_big") == \
        "https://images.igdb.com/igdb/image/upload/t_cover_big/co1r7f.jpg"
    assert image_url(None, "t_cover_big") is None
    assert format_age_rating([{'category': 2, 'rating': 5}]) == 'PEGI 18'
    assert format_age_rating([{'category': 1, 'rating': 4}]) == 'T (Teen)'
    assert format_age_rating([]) is None


@pytest.mark.asyncio
async def test_steam_artwork_needs_no_network(coordinator):
    http = Mock()
    http.get_json = AsyncMock()
    provider = SteamProvider(coordinator, http=http)

    artwork = await provider.get_artwork('steam-620')

    assert artwork.boxart_url.endswith('/620/library_600x900.jpg')
    assert artwork.banner_url.endswith('/620/header.jpg')
    assert artwork.hero_url.endswith('/620/library_hero.jpg')
    http.get_json.assert_not_awaited()


@pytest.mark.asyncio
async def test_steam_search_with_app_id_uses_app_details(coordinator):
    http = Mock()
    http.get_json = AsyncMock(return_value={
        '620': {'success': True, 'data': {'name': 'Portal 2', 'release_date': {'date': '18 Apr, 2011'}}}
    })
    provider = SteamProvider(coordinator, http=http)

    results = await provider.search("Portal 2", steam_app_id="620")

    assert [(r.id, r.title, r.steam_app_id) for r in results] == [('steam-620', 'Portal 2', '620')]
    assert results[0].release_date == '2011-04-18'


def test_select_best_image_prefers_locked_then_score():
    images = [
        {'id': 1, 'url': 'a', 'score': 5},
        {'id': 2, 'url': 'b', 'score': 10, 'nsfw': True},
        {'id': 3, 'url': 'c', 'score': 1, 'lock': True},
        {'id': 4, 'url': 'd', 'score': 7},
    ]
    assert select_best_image(images)['id'] == 3
    assert select_best_image(images[:2] + images[3:])['id'] == 4
    assert select_best_image([{'id': 5, 'url': 'e', 'humor': True}]) is None


@pytest.mark.asyncio
async def test_steamgriddb_uses_bearer_auth(coordinator):
    http = Mock()
    http.get_json = AsyncMock(return_value={'success': True, 'data': {'id': 5, 'name': 'Portal 2'}})
    provider = SteamGridDBProvider(coordinator, {'api_key': 'sgdb-key'}, http=http)

    results = await provider.search("Portal 2", steam_app_id="620")

    assert results[0].id == 'steamgriddb-5'
    assert results[0].steam_app_id == '620'
    assert http.get_json.await_args.kwargs['headers'] == {'Authorization': 'Bearer sgdb-key'}
    assert await provider.get_description('steamgriddb-5') is None


@pytest.mark.asyncio
@pytest.mark.parametrize("status,body,error", [
    (401, '', AuthenticationError),
    (403, '', AuthenticationError),
    (429, '', RateLimitedError),
    (503, '', NetworkError),
    (400, '{"error": "Invalid API key"}', AuthenticationError),
    (400, 'bad request', ProviderError),
])
async def test_http_status_mapping(status, body, error):
    client = HttpClient('rawg')
    resp = Mock(status=status)
    resp.text = AsyncMock(return_value=body)
    with pytest.raises(error):
        await client._raise_for_status(resp)


@pytest.mark.asyncio
async def test_http_ok_and_not_found_pass():
    client = HttpClient('rawg')
    for status in (200, 204, 404):
        resp = Mock(status=status)
        resp.text = AsyncMock(return_value='')
        await client._raise_for_status(resp)


def test_invalid_key_detection():
    assert looks_like_invalid_key('{"error": "Invalid API key"}') == True
    assert looks_like_invalid_key('invalid client') == True
    assert looks_like_invalid_key('not found') == False


def unthrottled_coordinator():
    return RateLimitCoordinator(
        service_intervals={'rawg': 0.0, 'steamgriddb': 0.0, 'igdb': 0.0},
        global_interval=0.0,
    )


@pytest.mark.asyncio
async def test_auth_failure_stops_queued_requests():
    coordinator = unthrottled_coordinator()
    http = Mock()
    http.get_json = AsyncMock(side_effect=AuthenticationError("rawg rejected credentials (401)", "rawg", 401))
    provider = RAWGProvider(coordinator, {'api_key': 'bad'}, http=http)

    outcomes = await asyncio.gather(*(provider.search(f"Game {i}") for i in range(6)), return_exceptions=True)
    await coordinator.close()

    auth_errors = [o for o in outcomes if isinstance(o, AuthenticationError)]
    assert len(auth_errors) == 1
    assert [o for o in outcomes if not isinstance(o, AuthenticationError)] == [[]] * 5
    assert http.get_json.await_count == 1
    assert await provider.is_available() == False


@pytest.mark.asyncio
async def test_steamgriddb_auth_failure_is_raised_once_per_artwork_call():
    coordinator = unthrottled_coordinator()
    http = Mock()
    http.get_json = AsyncMock(side_effect=AuthenticationError("steamgriddb rejected credentials (401)",
                                                              "steamgriddb", 401))
    provider = SteamGridDBProvider(coordinator, {'api_key': 'bad'}, http=http)

    with pytest.raises(AuthenticationError):
        await provider.get_artwork('steamgriddb-36135')
    assert await provider.get_artwork('steamgriddb-36135') is None
    await coordinator.close()

    assert http.get_json.await_count == 1


@pytest.mark.asyncio
async def test_steamgriddb_keeps_assets_when_one_lookup_fails(coordinator):
    async def get_json(url, params=None, headers=None):
        if '/heroes/' in url:
            raise RateLimitedError("steamgriddb rate limit hit", "steamgriddb", 429)
        if '/grids/' in url:
            return {'success': True, 'data': [{'url': 'https://cdn2.steamgriddb.com/grid.png',
                                               'width': 600, 'height': 900}]}
        return {'success': True, 'data': []}

    http = Mock()
    http.get_json = AsyncMock(side_effect=get_json)
    provider = SteamGridDBProvider(coordinator, {'api_key': 'key'}, http=http)

    artwork = await provider.get_artwork('steamgriddb-36135')

    assert artwork.boxart_url == 'https://cdn2.steamgriddb.com/grid.png'
    assert artwork.hero_url is None
    assert await provider.is_available() == True


def rawg_details_then(screenshots_error):
    details = {'id': 1, 'name': 'Celeste', 'background_image': 'https://media.rawg.io/celeste.jpg'}

    async def get_json(url, params=None):
        if url.endswith('/screenshots'):
            raise screenshots_error
        return details

    http = Mock()
    http.get_json = AsyncMock(side_effect=get_json)
    return http


@pytest.mark.asyncio
async def test_rawg_artwork_survives_screenshot_failure(coordinator):
    http = rawg_details_then(RateLimitedError("rawg rate limit hit", "rawg", 429))
    provider = RAWGProvider(coordinator, {'api_key': 'key'}, http=http)

    artwork = await provider.get_artwork('rawg-1')

    assert artwork.banner_url == 'https://media.rawg.io/celeste.jpg'
    assert artwork.hero_url == 'https://media.rawg.io/celeste.jpg'
    assert artwork.screenshots == []


@pytest.mark.asyncio
async def test_rawg_screenshot_auth_failure_still_disables(coordinator):
    http = rawg_details_then(AuthenticationError("rawg rejected credentials (401)", "rawg", 401))
    provider = RAWGProvider(coordinator, {'api_key': 'bad'}, http=http)

    with pytest.raises(AuthenticationError):
        await provider.get_artwork('rawg-1')
    assert await provider.is_available() == False


@pytest.mark.asyncio
async def test_igdb_rejected_token_skips_later_queries(coordinator):
    http = Mock()
    http.post_json = AsyncMock(side_effect=AuthenticationError("igdb rejected credentials (401)", "igdb", 401))
    provider = IGDBProvider(coordinator, {'client_id': 'id', 'client_secret': 'bad'}, http=http)

    with pytest.raises(AuthenticationError):
        await provider.search("The Witcher 3")
    assert await provider.get_access_token() is None
    assert await provider._query('games', 'fields name;') == []
    assert http.post_json.await_count == 1
