from __future__ import annotations

import asyncio

import pytest

from dnssync.errors import AddressUnavailableError, ConfigurationError, UpstreamError
from dnssync.schemas.endpoints import RecordTTL
from dnssync.sources.annotations import CONTROLLER_ANNOTATION_KEY, TTL_ANNOTATION_KEY
from dnssync.sources.node import NodeSource, select_targets
from dnssync.sources.selectors import Selector
from tests.helpers import EXTERNAL, INTERNAL, assert_endpoints, make_endpoint, make_node, synced_cache

EXTERNAL_TRAFFIC = "service.beta.kubernetes.io/external-traffic"


@pytest.mark.parametrize(
    "fqdn_template,annotation_filter,expect_error",
    [
        ("{{.Name", "", True),
        ("", "", False),
        ("{{.Name}}-{{.Namespace}}.ext-dns.test.com", "", False),
        ("", "kubernetes.io/ingress.class=nginx", False),
        ("{{.Labels}}.example.org", "", True),
        ("", "key in (", False),
    ],
    ids=[
        "invalid template",
        "valid empty template",
        "valid template",
        "non-empty annotation filter",
        "unknown template field",
        "invalid annotation filter",
    ],
)
def test_new_node_source(node_cache, fqdn_template, annotation_filter, expect_error):
    if expect_error:
        with pytest.raises(ConfigurationError):
            NodeSource(node_cache, annotation_filter, fqdn_template, Selector.everything())
    else:
        NodeSource(node_cache, annotation_filter, fqdn_template, Selector.everything())


_a = make_endpoint


@pytest.mark.parametrize(
    "annotation_filter,fqdn_template,selector,node,expected",
    [
        pytest.param(
            "", "", None, make_node("node1"), [_a("node1", "1.2.3.4")],
            id="short hostname returns one endpoint",
        ),
        pytest.param(
            "", "", None, make_node("node1.example.org"), [_a("node1.example.org", "1.2.3.4")],
            id="fqdn returns one endpoint",
        ),
        pytest.param(
            "", "{{.Name}}.example.org", None, make_node("node1"), [_a("node1.example.org", "1.2.3.4")],
            id="template expands hostname",
        ),
        pytest.param(
            "",
            "{{.Name}}.example.org",
            None,
            make_node("node1.example.org"),
            [_a("node1.example.org.example.org", "1.2.3.4")],
            id="template concatenates onto fqdn",
        ),
        pytest.param(
            "",
            "{{.Name}}.example.org",
            None,
            make_node("node1", [(EXTERNAL, "1.2.3.4"), (EXTERNAL, "5.6.7.8")]),
            [_a("node1.example.org", "1.2.3.4", "5.6.7.8")],
            id="multiple external addresses in one endpoint",
        ),
        pytest.param(
            "",
            "",
            None,
            make_node("node1", [(EXTERNAL, "1.2.3.4"), (INTERNAL, "2.3.4.5")]),
            [_a("node1", "1.2.3.4")],
            id="external address wins over internal",
        ),
        pytest.param(
            "",
            "",
            None,
            make_node("node1", [(INTERNAL, "2.3.4.5")]),
            [_a("node1", "2.3.4.5")],
            id="internal address used without external",
        ),
        pytest.param(
            "",
            "",
            None,
            make_node("node1", annotations={EXTERNAL_TRAFFIC: "OnlyLocal"}),
            [_a("node1", "1.2.3.4")],
            id="annotated node without annotation filter",
        ),
        pytest.param(
            f"{EXTERNAL_TRAFFIC} in (Global, OnlyLocal)",
            "",
            None,
            make_node("node1", annotations={EXTERNAL_TRAFFIC: "OnlyLocal"}),
            [_a("node1", "1.2.3.4")],
            id="matching annotation filter",
        ),
        pytest.param(
            f"{EXTERNAL_TRAFFIC} in (Global, OnlyLocal)",
            "",
            None,
            make_node("node1", annotations={EXTERNAL_TRAFFIC: "SomethingElse"}),
            [],
            id="non-matching annotation filter",
        ),
        pytest.param(
            f"{EXTERNAL_TRAFFIC} in (Global, OnlyLocal)",
            "",
            None,
            make_node("node1"),
            [],
            id="annotation filter with absent key",
        ),
        pytest.param(
            "",
            "",
            None,
            make_node("node1", annotations={CONTROLLER_ANNOTATION_KEY: "dns-controller"}),
            [_a("node1", "1.2.3.4")],
            id="our controller",
        ),
        pytest.param(
            "",
            "",
            None,
            make_node("node1", annotations={CONTROLLER_ANNOTATION_KEY: "not-dns-controller"}),
            [],
            id="different controller is ignored",
        ),
        pytest.param(
            "", "", None, make_node("node1"), [_a("node1", "1.2.3.4")],
            id="ttl not annotated",
        ),
        pytest.param(
            "",
            "",
            None,
            make_node("node1", annotations={TTL_ANNOTATION_KEY: "foo"}),
            [_a("node1", "1.2.3.4")],
            id="ttl annotated but invalid",
        ),
        pytest.param(
            "",
            "",
            None,
            make_node("node1", annotations={TTL_ANNOTATION_KEY: "10"}),
            [_a("node1", "1.2.3.4", ttl=10)],
            id="ttl annotated and valid",
        ),
        pytest.param(
            "",
            "",
            Selector.parse("node-label=include"),
            make_node("node1", labels={"node-label": "include"}),
            [_a("node1", "1.2.3.4")],
            id="labels match label selector",
        ),
        pytest.param(
            "",
            "",
            Selector.parse("node-label=include"),
            make_node("node1", labels={"node-label": "exclude"}),
            [],
            id="labels do not match label selector",
        ),
    ],
)
@pytest.mark.asyncio
async def test_node_source_endpoints(annotation_filter, fqdn_template, selector, node, expected):
    cache = await synced_cache([node])
    source = NodeSource(cache, annotation_filter, fqdn_template, selector)

    endpoints = await source.endpoints()

    assert_endpoints(endpoints, expected)


@pytest.mark.asyncio
async def test_node_without_routable_address_fails_whole_call():
    cache = await synced_cache([make_node("good"), make_node("bad", [])])
    source = NodeSource(cache)

    with pytest.raises(AddressUnavailableError) as excinfo:
        await source.endpoints()

    assert excinfo.value.node_name == "bad"


@pytest.mark.asyncio
async def test_excluded_node_without_address_is_not_an_error():
    nodes = [
        make_node("node1"),
        make_node("node2", [], annotations={CONTROLLER_ANNOTATION_KEY: "someone-else"}),
    ]
    source = NodeSource(await synced_cache(nodes))

    assert_endpoints(await source.endpoints(), [_a("node1", "1.2.3.4")])


@pytest.mark.asyncio
async def test_nil_labels_yield_empty_label_map():
    cache = await synced_cache([make_node("node1", labels=None)])

    endpoints = await NodeSource(cache).endpoints()

    assert endpoints[0].labels == {}
    assert endpoints[0].record_ttl == RecordTTL()


@pytest.mark.asyncio
async def test_labels_are_copied_from_node():
    node = make_node("node1", labels={"zone": "a"})
    endpoints = await NodeSource(await synced_cache([node])).endpoints()

    endpoints[0].labels["zone"] = "b"

    assert node.labels == {"zone": "a"}


@pytest.mark.asyncio
async def test_custom_controller_identity():
    node = make_node("node1", annotations={CONTROLLER_ANNOTATION_KEY: "edge"})
    cache = await synced_cache([node])

    assert await NodeSource(cache).endpoints() == []
    ours = await NodeSource(cache, controller_identity="edge").endpoints()
    assert [item.dns_name for item in ours] == ["node1"]


@pytest.mark.asyncio
async def test_endpoints_reflect_cache_state_at_call_time():
    cache = await synced_cache([make_node("node1")])
    source = NodeSource(cache)
    assert [item.dns_name for item in await source.endpoints()] == ["node1"]

    await cache.upsert(make_node("node2", [(INTERNAL, "10.0.0.2")]))
    await cache.delete("node1")

    assert_endpoints(await source.endpoints(), [_a("node2", "10.0.0.2")])


@pytest.mark.asyncio
async def test_unsynced_cache_raises_upstream_error(node_cache):
    with pytest.raises(UpstreamError):
        await NodeSource(node_cache).endpoints()


@pytest.mark.asyncio
async def test_cancellation_propagates_from_client():
    class BlockingClient:
        async def list_nodes(self):
            await asyncio.sleep(3600)
            return []

        def add_event_handler(self, handler):
            pass

    task = asyncio.create_task(NodeSource(BlockingClient()).endpoints())
    await asyncio.sleep(0)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task


def test_select_targets_keeps_address_order():
    node = make_node(
        "node1",
        [(INTERNAL, "10.0.0.1"), (EXTERNAL, "5.6.7.8"), (INTERNAL, "10.0.0.2"), (EXTERNAL, "1.2.3.4")],
    )

    assert select_targets(node) == ["5.6.7.8", "1.2.3.4"]


@pytest.mark.asyncio
async def test_invalid_annotation_filter_fails_each_call(node_cache):
    await node_cache.replace([make_node("node1")])
    source = NodeSource(node_cache, "key in (", "", Selector.everything())

    for _ in range(2):
        with pytest.raises(ConfigurationError):
            await source.endpoints()
