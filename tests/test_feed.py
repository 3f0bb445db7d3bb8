"""Tests for feed assembly over the friend graph."""
import pytest

from services.feed import FeedAssembler


@pytest.fixture
def graph(db):
    # alice - bob, alice - frank direct; bob - carol makes carol second degree;
    # carol - dave is three hops away; alice -> erin is still pending
    db.add_friend_request("alice", "bob")
    db.add_friend_request("frank", "alice")
    db.add_friend_request("carol", "bob")
    db.add_friend_request("bob", "frank")
    db.add_friend_request("carol", "dave")
    db.add_friend_request("alice", "erin", status="pending")
    return db


def test_direct_friends_from_both_sides(graph):
    assert sorted(FeedAssembler(graph).direct_friends("alice")) == ["bob", "frank"]


def test_second_degree_excludes_direct_friends_and_self(graph):
    direct, mutual = FeedAssembler(graph).neighborhood("alice")
    assert mutual == {"carol"}
    assert "alice" not in mutual
    assert not mutual & set(direct)


def test_no_friends_means_only_own_posts(db):
    mine = db.seed_post("alice")
    db.seed_post("bob")
    assembler = FeedAssembler(db)
    assert assembler.feed_user_ids("alice") == ["alice"]
    assert [p["id"] for p in assembler.assemble("alice", 0, 5)] == [mine]


def test_feed_covers_two_hop_neighborhood(graph):
    own = graph.seed_post("alice")
    friend = graph.seed_post("bob")
    other_friend = graph.seed_post("frank")
    mutual = graph.seed_post("carol")
    graph.seed_post("dave")
    graph.seed_post("erin")
    graph.seed_post("bob", is_deleted=True)

    posts = FeedAssembler(graph).assemble("alice", 0, 20)
    assert [p["id"] for p in posts] == [mutual, other_friend, friend, own]


def test_accepted_friendship_is_symmetric(graph):
    alice_post = graph.seed_post("alice")
    bob_feed = FeedAssembler(graph).assemble("bob", 0, 20)
    assert alice_post in [p["id"] for p in bob_feed]


def test_feed_endpoint(client, graph):
    ids = [graph.seed_post(author) for author in ("alice", "bob", "carol", "dave", "frank")]
    res = client.get("/posts/feed")
    assert res.status_code == 200
    body = res.json()
    assert body["message"] == "Feed posts fetched successfully"
    assert body["page"] == 1
    assert body["limit"] == 5
    assert body["count"] == 4
    assert [p["id"] for p in body["posts"]] == [ids[4], ids[2], ids[1], ids[0]]
    assert body["posts"][0]["author"]["username"] == "Frank"


def test_feed_endpoint_pagination(client, graph):
    ids = [graph.seed_post("bob", f"post {i}") for i in range(6)]
    body = client.get("/posts/feed", params={"page": 2, "limit": 4}).json()
    assert [p["id"] for p in body["posts"]] == [ids[1], ids[0]]
    assert body["count"] == 2


def test_feed_endpoint_clamps_paging(client, graph):
    body = client.get("/posts/feed", params={"page": 0, "limit": 100}).json()
    assert body["page"] == 1
    assert body["limit"] == 20


def test_feed_hides_deleted_posts(client, graph):
    post_id = graph.seed_post("bob")
    client.post(f"/posts/like/{post_id}")
    graph.posts[post_id]["is_deleted"] = True
    assert client.get("/posts/feed").json()["posts"] == []
