"""
Property-based tests for status resolution and the registrar facade.
"""

from datetime import datetime, timedelta, timezone

from hypothesis import given, settings
from hypothesis import strategies as st

from subdomain_registrar.enums import SubdomainStatusKind
from subdomain_registrar.models import RecordStatus
from subdomain_registrar.queue_store import QueueStore
from subdomain_registrar.registrar import SubdomainRegistrar
from subdomain_registrar.status import (
    NOT_FOUND_MESSAGE,
    PROPAGATED_MESSAGE,
    QUEUED_MESSAGE,
    StatusResolver,
)
from subdomain_registrar.subdomain_validator import SubdomainValidator

from fakes import (
    TEST_ADDRESS,
    FakeChainClient,
    make_config,
    make_operation,
    quiet_logger,
    run_async,
)


def make_resolver(chain: FakeChainClient, store: QueueStore) -> StatusResolver:
    return StatusResolver(
        domain_name="bar.id",
        store=store,
        chain=chain,
        validator=SubdomainValidator(),
        logger=quiet_logger(),
    )


local_status_strategy = st.sampled_from([
    RecordStatus.received(),
    RecordStatus.submitted("txhash"),
    RecordStatus.error("failed"),
])


class TestStatusPriorityProperty:
    """
    Property-based tests for on-chain priority.
    """

    @given(local_status=local_status_strategy)
    @settings(max_examples=20)
    def test_live_name_reports_propagated(self, local_status: RecordStatus) -> None:
        """
        Property 18: A name live on chain is propagated whatever its local
        record says.
        """
        chain = FakeChainClient()
        chain.registered.add("bar.bar.id")
        store = QueueStore()
        index = store.add_to_queue(make_operation("bar"))
        store.set_record_status(index, local_status)

        status = run_async(make_resolver(chain, store).get_subdomain_status("bar"))

        assert status.kind == SubdomainStatusKind.PROPAGATED
        assert status.to_dict() == {"status": PROPAGATED_MESSAGE}

    def test_local_states(self) -> None:
        chain = FakeChainClient()
        store = QueueStore()
        resolver = make_resolver(chain, store)

        missing = run_async(resolver.get_subdomain_status("bar"))
        assert missing.kind == SubdomainStatusKind.NOT_FOUND
        assert missing.to_dict() == {"status": NOT_FOUND_MESSAGE, "statusCode": 404}

        index = store.add_to_queue(make_operation("bar"))
        queued = run_async(resolver.get_subdomain_status("bar"))
        assert queued.kind == SubdomainStatusKind.QUEUED
        assert queued.message == QUEUED_MESSAGE

        store.set_record_status(index, RecordStatus.submitted("txhash"))
        submitted = run_async(resolver.get_subdomain_status("bar"))
        assert submitted.kind == SubdomainStatusKind.SUBMITTED
        assert submitted.tx_id == "txhash"
        assert "transaction txhash" in submitted.message

        store.set_record_status(index, RecordStatus.error("disk full"))
        other = run_async(resolver.get_subdomain_status("bar"))
        assert other.kind == SubdomainStatusKind.OTHER
        assert other.message == "error:disk full"

    def test_chain_failure_falls_back_to_queue(self) -> None:
        chain = FakeChainClient()
        chain.failing_names.add("bar.bar.id")
        store = QueueStore()
        store.add_to_queue(make_operation("bar"))

        status = run_async(make_resolver(chain, store).get_subdomain_status("bar"))
        assert status.kind == SubdomainStatusKind.QUEUED


class TestSubdomainInfoProperty:
    """
    Tests for the naming-API shaped description of queued names.
    """

    def test_info_shapes(self) -> None:
        chain = FakeChainClient()
        store = QueueStore()
        resolver = make_resolver(chain, store)

        assert run_async(resolver.get_subdomain_info("bar.bar.id"))[0] == 404
        assert run_async(resolver.get_subdomain_info("bar.other.id"))[0] == 400
        assert run_async(resolver.get_subdomain_info("Bad!.bar.id"))[0] == 400
        assert run_async(resolver.get_subdomain_info("bar.id"))[0] == 400

        index = store.add_to_queue(make_operation("bar"))
        code, body = run_async(resolver.get_subdomain_info("bar.bar.id"))
        assert code == 200
        assert body == {
            "status": "received_subdomain",
            "address": TEST_ADDRESS,
            "last_txid": None,
            "zonefile_txt": "hello-world",
        }

        store.set_record_status(index, RecordStatus.submitted("txhash"))
        code, body = run_async(resolver.get_subdomain_info("bar.bar.id"))
        assert (code, body["status"], body["last_txid"]) == (200, "submitted_subdomain", "txhash")


class TestListingWindowProperty:
    """
    Tests for the bounded listing window.
    """

    def test_old_records_not_listed(self) -> None:
        store = QueueStore()
        now = datetime.now(timezone.utc)
        store.add_to_queue(make_operation("old"), received_at=now - timedelta(days=8))
        recent = store.add_to_queue(make_operation("new"), received_at=now - timedelta(days=6))

        records = make_resolver(FakeChainClient(), store).list_subdomains(0, now=now)
        assert [record.queue_index for record in records] == [recent]


class TestRegistrarLifecycleProperty:
    """
    End-to-end tests through the registrar facade.
    """

    def test_queued_submitted_propagated(self) -> None:
        chain = FakeChainClient()
        store = QueueStore()
        registrar = SubdomainRegistrar(make_config(), chain, store=store, logger=quiet_logger())

        async def main() -> None:
            await registrar.queue_registration(
                make_operation("bar", zonefile="hello-world"), ip_address="10.0.0.1"
            )
            status = await registrar.get_subdomain_status("bar")
            assert status.kind == SubdomainStatusKind.QUEUED

            await registrar.update_queue_status(["bar"], "txhash")
            status = await registrar.get_subdomain_status("bar")
            assert status.kind == SubdomainStatusKind.SUBMITTED
            assert status.tx_id == "txhash"

            chain.registered.add("bar.bar.id")
            status = await registrar.get_subdomain_status("bar")
            assert status.kind == SubdomainStatusKind.PROPAGATED

        run_async(main())

    def test_batch_then_confirm(self) -> None:
        chain = FakeChainClient(chain_tip=100)
        registrar = SubdomainRegistrar(make_config(), chain, logger=quiet_logger())

        async def main() -> None:
            await registrar.queue_registration(make_operation("foo"), ip_address="10.0.0.1")
            batch = await registrar.submit_batch()
            assert batch.included_names == ["foo"]

            status = await registrar.get_subdomain_status("foo")
            assert status.tx_id == batch.tx_hash

            chain.tx_heights[batch.tx_hash] = 100
            chain.chain_tip = 107
            checks = await registrar.check_zonefiles()
            assert [check.confirmed for check in checks] == [True]
            assert chain.published == [batch.zonefile, batch.zonefile]

            await registrar.shutdown()

        run_async(main())
        assert chain.closed

    def test_domain_name_is_normalized(self) -> None:
        registrar = SubdomainRegistrar(
            make_config(domain_name="  Bar.ID "), FakeChainClient(), logger=quiet_logger()
        )
        assert registrar.domain_name == "bar.id"
