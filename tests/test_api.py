import asyncio
import uuid

from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete

from core.errors import rate_limited
from models.corpus import CorpusEntry

from conftest import analysis_reply


async def create_entry(client, headers, **payload):
    body = {"content": "Cities are changing after remote work.", **payload}
    response = await client.post("/api/corpus", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def test_health(client):
    response = await client.get("/health")
    assert response.json()["status"] == "healthy"


async def test_register_login_and_me(client):
    registered = await client.post(
        "/api/auth/register",
        json={"username": "learner", "password": "secret123", "email": "learner@example.com"},
    )
    assert registered.status_code == 201
    assert registered.json()["user"]["statistics"]["totalCorpus"] == 0

    login = await client.post("/api/auth/login", json={"username": "learner", "password": "secret123"})
    assert login.status_code == 200
    token = login.json()["accessToken"]

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["username"] == "learner"


async def test_duplicate_username(client, user):
    response = await client.post("/api/auth/register", json={"username": user.username, "password": "secret123"})
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "E4011_DUPLICATE_KEY"


async def test_wrong_password(client, user):
    response = await client.post("/api/auth/login", json={"username": user.username, "password": "nope-nope"})
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "E3001_INVALID_CREDENTIALS"


async def test_short_password_is_a_validation_error(client):
    response = await client.post("/api/auth/register", json={"username": "shorty", "password": "123"})
    assert response.status_code == 400
    assert response.json()["error"]["category"] == "validation"


async def test_profile_password_change_needs_current_password(client, user, auth_headers):
    rejected = await client.put(
        "/api/auth/profile",
        json={"currentPassword": "wrong-one", "newPassword": "changed123"},
        headers=auth_headers,
    )
    assert rejected.status_code == 400

    accepted = await client.put(
        "/api/auth/profile",
        json={"currentPassword": "secret123", "newPassword": "changed123", "email": "new@example.com"},
        headers=auth_headers,
    )
    assert accepted.status_code == 200
    assert accepted.json()["email"] == "new@example.com"

    login = await client.post("/api/auth/login", json={"username": user.username, "password": "changed123"})
    assert login.status_code == 200


async def test_requests_without_token_are_rejected(client):
    response = await client.get("/api/corpus")
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "E3004_NOT_AUTHENTICATED"

    garbage = await client.get("/api/corpus", headers={"Authorization": "Bearer not-a-jwt"})
    assert garbage.status_code == 401


async def test_create_and_fetch_corpus_entry(client, auth_headers):
    created = await create_entry(
        client,
        auth_headers,
        title="Downtowns",
        themes=["Society", "Work & Economy"],
        vocabulary=[{"word": "footfall", "meaning": "人流量"}, {"meaning": "no word"}],
    )
    assert created["themes"] == {"primary": "Society", "secondary": ["Work & Economy"], "custom": []}
    assert [v["word"] for v in created["vocabulary"]] == ["footfall"]
    assert created["vocabulary"][0]["reason"] == "Important vocabulary"
    assert created["metadata"]["fileType"] == "text"

    fetched = await client.get(f"/api/corpus/{created['id']}", headers=auth_headers)
    assert fetched.json()["title"] == "Downtowns"


async def test_create_rejects_empty_content(client, auth_headers):
    response = await client.post("/api/corpus", json={"content": "  "}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "E2006_EMPTY_CONTENT"


async def test_list_pagination_shape(client, auth_headers):
    for i in range(3):
        await create_entry(client, auth_headers, title=f"Entry {i}")

    response = await client.get("/api/corpus", params={"page": 1, "limit": 2}, headers=auth_headers)
    body = response.json()
    assert len(body["list"]) == 2
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "totalPages": 2}


async def test_invalid_and_unknown_ids(client, auth_headers):
    malformed = await client.get("/api/corpus/not-a-uuid", headers=auth_headers)
    assert malformed.status_code == 400
    assert malformed.json()["error"]["code"] == "E2011_INVALID_IDENTIFIER"

    missing = await client.get(f"/api/corpus/{uuid.uuid4()}", headers=auth_headers)
    assert missing.status_code == 404


async def test_partial_update_and_delete(client, auth_headers):
    created = await create_entry(client, auth_headers, title="Draft", tags=["cities"])

    updated = await client.put(f"/api/corpus/{created['id']}", json={"title": "Final"}, headers=auth_headers)
    assert updated.status_code == 200
    assert updated.json()["title"] == "Final"
    assert updated.json()["tags"] == ["cities"]

    deleted = await client.delete(f"/api/corpus/{created['id']}", headers=auth_headers)
    assert deleted.status_code == 200
    gone = await client.get(f"/api/corpus/{created['id']}", headers=auth_headers)
    assert gone.status_code == 404


async def test_corpus_stats_and_themes(client, auth_headers):
    await create_entry(client, auth_headers, themes={"primary": "Health"}, vocabulary=[{"word": "sleep"}])
    await create_entry(client, auth_headers, themes={"primary": "Health"})

    stats = (await client.get("/api/corpus/stats", headers=auth_headers)).json()
    assert stats == {"total": 2, "byTheme": [{"theme": "Health", "count": 2, "totalVocab": 1}], "totalVocabulary": 1}

    themes = (await client.get("/api/corpus/themes")).json()
    assert len(themes) == 15
    assert "Work & Economy" in themes


async def test_opinions_follow_their_corpus_entry(client, auth_headers):
    created = await create_entry(
        client,
        auth_headers,
        themes={"primary": "Crime", "secondary": ["Society"]},
        opinion={"coreViewpoint": "Prevention beats punishment", "supportingEvidence": ["Lower reoffending"]},
    )

    listed = (await client.get("/api/opinions", headers=auth_headers)).json()
    (opinion,) = listed["list"]
    assert opinion["sourceId"] == created["id"]
    assert opinion["subThemes"] == ["Society"]
    assert opinion["supportingFacts"] == ["Lower reoffending"]

    edited = await client.put(
        f"/api/opinions/{opinion['id']}", json={"personalReflection": "I agree"}, headers=auth_headers
    )
    assert edited.json()["personalReflection"] == "I agree"

    stats = (await client.get("/api/opinions/stats", headers=auth_headers)).json()
    assert stats == {"total": 1, "byTheme": [{"theme": "Crime", "count": 1}]}

    await client.delete(f"/api/corpus/{created['id']}", headers=auth_headers)
    assert (await client.get("/api/opinions", headers=auth_headers)).json()["pagination"]["total"] == 0


async def test_statistics_visible_on_me(client, auth_headers):
    await create_entry(client, auth_headers, vocabulary=[{"word": "a"}, {"word": "b"}])
    me = (await client.get("/api/auth/me", headers=auth_headers)).json()
    assert me["statistics"]["totalCorpus"] == 1
    assert me["statistics"]["totalVocabulary"] == 2


async def test_analyze_without_storing(client, auth_headers, completion):
    completion.replies.append(analysis_reply())
    response = await client.post("/api/analysis", json={"text": "The gig economy..."}, headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["themes"]["primary"] == "Work & Economy"
    assert body["opinion"]["coreViewpoint"] == "Gig work trades security for flexibility."

    listed = (await client.get("/api/corpus", headers=auth_headers)).json()
    assert listed["pagination"]["total"] == 0


async def test_analyze_and_ingest(client, auth_headers, completion):
    completion.replies.append(analysis_reply())
    response = await client.post(
        "/api/analysis/ingest",
        json={"text": "The gig economy is reshaping work.", "fileInfo": {"name": "gig.txt", "type": "text/plain"}},
        headers=auth_headers,
    )
    assert response.status_code == 201
    entry = response.json()
    assert entry["title"] == "gig.txt"
    assert entry["summary"] == "Platforms are changing how people work."

    opinions = (await client.get("/api/opinions", headers=auth_headers)).json()
    assert opinions["pagination"]["total"] == 1


async def test_provider_rate_limit_maps_to_429(client, auth_headers, completion):
    completion.replies.append(rate_limited("ai_provider"))
    response = await client.post("/api/analysis", json={"text": "Some text"}, headers=auth_headers)
    assert response.status_code == 429
    assert response.json()["error"]["category"] == "provider"


async def test_ai_tools_routes(client, completion):
    completion.replies.extend([
        '["heavy rain", "light rain"]',
        '"Would you mind passing the salt?"',
    ])
    colloc = (await client.post("/ai/collocations", json={"word": "rain"})).json()
    assert colloc["collocations"] == ["heavy rain", "light rain"]
    assert colloc["count"] == 2

    polished = (await client.post(
        "/ai/polish-tone", json={"originalSentence": "Give me the salt.", "targetTone": "formal"}
    )).json()
    assert polished["polished"] == "Would you mind passing the salt?"


async def test_ai_tools_validation(client):
    response = await client.post("/ai/polish-tone", json={"originalSentence": "Hi", "targetTone": "pirate"})
    assert response.status_code == 400


async def test_opinions_carry_their_source_entry(client, auth_headers, session_factory):
    created = await create_entry(
        client,
        auth_headers,
        title="Night buses",
        content="Night buses keep service workers moving.",
        opinion={"coreViewpoint": "Transit must run around the clock"},
    )

    (opinion,) = (await client.get("/api/opinions", headers=auth_headers)).json()["list"]
    assert opinion["source"] == {
        "id": created["id"],
        "title": "Night buses",
        "content": "Night buses keep service workers moving.",
    }
    single = (await client.get(f"/api/opinions/{opinion['id']}", headers=auth_headers)).json()
    assert single["source"]["title"] == "Night buses"

    # remove the corpus row behind the opinion's back
    async with session_factory() as session:
        await session.execute(delete(CorpusEntry).where(CorpusEntry.id == uuid.UUID(created["id"])))
        await session.commit()

    (orphan,) = (await client.get("/api/opinions", headers=auth_headers)).json()["list"]
    assert orphan["sourceId"] == created["id"]
    assert orphan["source"] is None


async def test_unparseable_paging_falls_back_to_defaults(client, auth_headers):
    await create_entry(client, auth_headers)

    corpus = await client.get("/api/corpus", params={"page": "abc", "limit": "lots"}, headers=auth_headers)
    assert corpus.status_code == 200
    assert corpus.json()["pagination"] == {"page": 1, "limit": 20, "total": 1, "totalPages": 1}

    opinions = await client.get("/api/opinions", params={"limit": "abc"}, headers=auth_headers)
    assert opinions.status_code == 200
    assert opinions.json()["pagination"]["limit"] == 20


async def test_concurrent_ingests_from_one_user(client, auth_headers, refresher):
    from main import app

    # no drain hook: refreshes overlap with the next round of requests
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as raw:
        for round_number in range(3):
            responses = await asyncio.gather(*(
                raw.post(
                    "/api/corpus",
                    json={"content": f"Round {round_number} text {i}", "opinion": {"coreViewpoint": "View"}},
                    headers=auth_headers,
                )
                for i in range(8)
            ))
            assert [r.status_code for r in responses] == [201] * 8, [r.text for r in responses]
    await refresher.drain()

    listed = (await client.get("/api/corpus", params={"limit": 100}, headers=auth_headers)).json()
    assert listed["pagination"]["total"] == 24
    me = (await client.get("/api/auth/me", headers=auth_headers)).json()
    assert me["statistics"]["totalCorpus"] == 24
    assert me["statistics"]["totalOpinions"] == 24
