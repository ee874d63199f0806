"""Unit tests for DesignOrderService."""

from collections.abc import Generator
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID

import pytest
from postgrest.exceptions import APIError as PostgrestAPIError

from src.api.middleware.error_handler import ConflictError, NotFoundError, StorageError, ValidationError
from src.models.design_order import DesignOrderStatus
from src.schemas.auth import UserContext
from src.services.design_order_service import DesignOrderService, UploadedFile
from src.services.order_state_machine import InvalidTransitionError
from src.services.profile_service import ClientIdentity
from tests.helpers import make_query, make_response, make_table_router, rpc_error

ORDER_ID = UUID("770e8400-e29b-41d4-a716-446655440000")
CLIENT_ID = UUID("550e8400-e29b-41d4-a716-446655440000")
DELIVERY_1 = "880e8400-e29b-41d4-a716-446655440001"
DELIVERY_2 = "880e8400-e29b-41d4-a716-446655440002"
FILE_ID = UUID("aa0e8400-e29b-41d4-a716-446655440000")


def make_order(**overrides: object) -> dict:
    order = {
        "id": str(ORDER_ID),
        "client_id": str(CLIENT_ID),
        "package_id": "bb0e8400-e29b-41d4-a716-446655440000",
        "status": "delivered",
        "payment_status": "paid",
        "revisions_used": 0,
        "max_revisions": 2,
        "package": {"name": "Logo Premium", "price": 497.0, "category": {"name": "Identidade Visual"}},
    }
    order.update(overrides)
    return order


def make_delivery(delivery_id: str, version: int, status: str = "pending_review") -> dict:
    return {"id": delivery_id, "order_id": str(ORDER_ID), "version_number": version, "status": status, "files": []}


@pytest.fixture
def user() -> UserContext:
    return UserContext(user_id=CLIENT_ID, email="ana@acme.com.br")


@pytest.fixture
def admin() -> UserContext:
    return UserContext(user_id=UUID("990e8400-e29b-41d4-a716-446655440000"), email="admin@webq.com.br", app_role="admin")


@pytest.fixture
def tables() -> dict[str, MagicMock]:
    return {}


@pytest.fixture
def mock_supabase(tables: dict[str, MagicMock]) -> MagicMock:
    return make_table_router(tables)


@pytest.fixture
def service(mock_supabase: MagicMock) -> Generator[DesignOrderService, None, None]:
    """DesignOrderService with mocked client and collaborators."""
    with (
        patch("src.services.design_order_service.get_supabase_client", return_value=mock_supabase),
        patch("src.services.profile_service.get_supabase_client"),
        patch("src.services.notification_service.get_supabase_client"),
        patch("src.services.audit_service.get_supabase_client"),
        patch("src.services.storage_service.get_supabase_client"),
    ):
        svc = DesignOrderService()

    svc.profiles = AsyncMock()
    svc.profiles.resolve_identity.return_value = ClientIdentity(client_name="Ana Souza", company_name="Acme")
    svc.notifications = AsyncMock()
    svc.audit = AsyncMock()
    svc.storage = AsyncMock()
    yield svc


class TestGetOrder:
    """Tests for get_order and get_order_view."""

    @pytest.mark.asyncio
    async def test_scopes_by_client(self, service: DesignOrderService, tables: dict) -> None:
        tables["design_orders"] = make_query(make_order())

        order = await service.get_order(ORDER_ID, CLIENT_ID)

        assert order["id"] == str(ORDER_ID)
        eq_calls = [c.args for c in tables["design_orders"].eq.call_args_list]
        assert ("id", str(ORDER_ID)) in eq_calls
        assert ("client_id", str(CLIENT_ID)) in eq_calls

    @pytest.mark.asyncio
    async def test_returns_none_when_missing(self, service: DesignOrderService, tables: dict) -> None:
        tables["design_orders"] = make_query(None)

        assert await service.get_order(ORDER_ID, CLIENT_ID) is None

    @pytest.mark.asyncio
    async def test_view_raises_not_found(self, service: DesignOrderService, tables: dict) -> None:
        tables["design_orders"] = make_query(None)

        with pytest.raises(NotFoundError) as exc_info:
            await service.get_order_view(ORDER_ID, CLIENT_ID)

        assert exc_info.value.message == "Pedido não encontrado"

    @pytest.mark.asyncio
    async def test_view_with_no_deliveries_is_valid(self, service: DesignOrderService, tables: dict) -> None:
        tables["design_orders"] = make_query(make_order(status="in_progress"))
        tables["design_deliveries"] = make_query([])

        view = await service.get_order_view(ORDER_ID, CLIENT_ID)

        assert view.deliveries == []
        assert view.projection.has_deliveries is False
        assert view.package_name == "Logo Premium"

    @pytest.mark.asyncio
    async def test_deliveries_newest_first(self, service: DesignOrderService, tables: dict) -> None:
        tables["design_deliveries"] = make_query([make_delivery(DELIVERY_2, 2), make_delivery(DELIVERY_1, 1)])

        deliveries = await service.get_deliveries(ORDER_ID)

        assert [d["version_number"] for d in deliveries] == [2, 1]
        tables["design_deliveries"].order.assert_called_with("version_number", desc=True)


class TestListOrders:
    """Tests for list_orders."""

    @pytest.fixture
    def rows(self) -> list[dict]:
        return [
            make_order(id="o1", status="delivered", deliveries=[{"count": 3}]),
            make_order(id="o2", status="in_progress", deliveries=[{"count": 1}]),
            make_order(id="o3", status="cancelled", deliveries=[{"count": 0}]),
            make_order(id="o4", status="approved", deliveries=[{"count": 1}]),
        ]

    @pytest.mark.asyncio
    async def test_only_paid_orders(self, service: DesignOrderService, tables: dict, rows: list) -> None:
        tables["design_orders"] = make_query(rows)

        orders = await service.list_orders(CLIENT_ID)

        assert len(orders) == 4
        assert ("payment_status", "paid") in [c.args for c in tables["design_orders"].eq.call_args_list]
        assert orders[0]["delivery_count"] == 3
        assert orders[0]["display_status"] == DesignOrderStatus.COMPLETED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tab,expected", [("completed", ["o1", "o4"]), ("active", ["o2"])])
    async def test_filters(
        self, service: DesignOrderService, tables: dict, rows: list, tab: str, expected: list
    ) -> None:
        tables["design_orders"] = make_query(rows)

        orders = await service.list_orders(CLIENT_ID, tab)

        assert [o["id"] for o in orders] == expected


class TestRecommendedPackages:
    """Tests for get_recommended_packages."""

    @pytest.mark.asyncio
    async def test_excludes_current_package(self, service: DesignOrderService, tables: dict) -> None:
        tables["design_packages"] = make_query([{"id": "p2", "name": "Cartão de Visita"}])

        packages = await service.get_recommended_packages("p1")

        assert packages[0]["name"] == "Cartão de Visita"
        tables["design_packages"].neq.assert_called_once_with("id", "p1")
        tables["design_packages"].limit.assert_called_once_with(6)


class TestApprove:
    """Tests for approve."""

    @pytest.mark.asyncio
    async def test_approves_latest_delivery(
        self, service: DesignOrderService, tables: dict, mock_supabase: MagicMock, user: UserContext
    ) -> None:
        tables["design_orders"] = make_query(make_order(), make_order(status="approved"))
        tables["design_deliveries"] = make_query(
            [make_delivery(DELIVERY_1, 1)],
            [make_delivery(DELIVERY_1, 1, status="approved")],
        )
        mock_supabase.rpc.return_value.execute.return_value = make_response(make_order(status="approved"))

        view = await service.approve(ORDER_ID, user)

        mock_supabase.rpc.assert_called_once_with(
            "approve_design_delivery",
            {"p_order_id": str(ORDER_ID), "p_delivery_id": DELIVERY_1, "p_user_id": str(CLIENT_ID)},
        )
        assert view.order["status"] == "approved"
        assert view.deliveries[0]["status"] == "approved"
        assert view.projection.is_order_complete is True
        service.notifications.notify_design_order_approved.assert_awaited_once_with(
            "Ana Souza", "Acme", ORDER_ID, "Logo Premium", acting_user_id=str(CLIENT_ID)
        )

    @pytest.mark.asyncio
    async def test_rejects_when_latest_not_pending(
        self, service: DesignOrderService, tables: dict, mock_supabase: MagicMock, user: UserContext
    ) -> None:
        tables["design_orders"] = make_query(make_order(status="revision_requested"))
        tables["design_deliveries"] = make_query([make_delivery(DELIVERY_1, 1, status="revision_requested")])

        with pytest.raises(ConflictError):
            await service.approve(ORDER_ID, user)

        mock_supabase.rpc.assert_not_called()
        service.notifications.notify_design_order_approved.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejects_when_order_complete(
        self, service: DesignOrderService, tables: dict, mock_supabase: MagicMock, user: UserContext
    ) -> None:
        tables["design_orders"] = make_query(make_order())
        tables["design_deliveries"] = make_query([
            make_delivery("d3", 3),
            make_delivery(DELIVERY_2, 2, status="revision_requested"),
            make_delivery(DELIVERY_1, 1, status="revision_requested"),
        ])

        with pytest.raises(ConflictError) as exc_info:
            await service.approve(ORDER_ID, user)

        assert exc_info.value.message == "Pedido já concluído"
        mock_supabase.rpc.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejects_cancelled_order_with_pending_delivery(
        self, service: DesignOrderService, tables: dict, mock_supabase: MagicMock, user: UserContext
    ) -> None:
        tables["design_orders"] = make_query(make_order(status="cancelled"))
        tables["design_deliveries"] = make_query([make_delivery(DELIVERY_1, 1)])

        with pytest.raises(ConflictError) as exc_info:
            await service.approve(ORDER_ID, user)

        assert exc_info.value.message == "Pedido cancelado"
        mock_supabase.rpc.assert_not_called()
        service.notifications.notify_design_order_approved.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejects_completed_order_with_pending_delivery(
        self, service: DesignOrderService, tables: dict, mock_supabase: MagicMock, user: UserContext
    ) -> None:
        tables["design_orders"] = make_query(make_order(status="completed"))
        tables["design_deliveries"] = make_query([make_delivery(DELIVERY_1, 1)])

        with pytest.raises(ConflictError) as exc_info:
            await service.approve(ORDER_ID, user)

        assert exc_info.value.message == "Pedido já concluído"
        mock_supabase.rpc.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "code,expected",
        [("PT409", ConflictError), ("PT404", NotFoundError)],
    )
    async def test_maps_rpc_errors(
        self,
        service: DesignOrderService,
        tables: dict,
        mock_supabase: MagicMock,
        user: UserContext,
        code: str,
        expected: type,
    ) -> None:
        tables["design_orders"] = make_query(make_order())
        tables["design_deliveries"] = make_query([make_delivery(DELIVERY_1, 1)])
        mock_supabase.rpc.return_value.execute.side_effect = rpc_error(code, "A entrega não é mais a versão mais recente")

        with pytest.raises(expected) as exc_info:
            await service.approve(ORDER_ID, user)

        assert exc_info.value.message == "A entrega não é mais a versão mais recente"
        service.notifications.notify_design_order_approved.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_rpc_error_propagates(
        self, service: DesignOrderService, tables: dict, mock_supabase: MagicMock, user: UserContext
    ) -> None:
        tables["design_orders"] = make_query(make_order())
        tables["design_deliveries"] = make_query([make_delivery(DELIVERY_1, 1)])
        mock_supabase.rpc.return_value.execute.side_effect = rpc_error("42501", "permission denied")

        with pytest.raises(PostgrestAPIError):
            await service.approve(ORDER_ID, user)


class TestRequestRevision:
    """Tests for request_revision."""

    @pytest.mark.asyncio
    async def test_requests_revision(
        self, service: DesignOrderService, tables: dict, mock_supabase: MagicMock, user: UserContext
    ) -> None:
        tables["design_orders"] = make_query(
            make_order(), make_order(status="revision_requested", revisions_used=1)
        )
        tables["design_deliveries"] = make_query(
            [make_delivery(DELIVERY_1, 1)],
            [make_delivery(DELIVERY_1, 1, status="revision_requested")],
        )
        mock_supabase.rpc.return_value.execute.return_value = make_response(make_order(revisions_used=1))

        view = await service.request_revision(ORDER_ID, user, "  Trocar a cor para azul  ")

        mock_supabase.rpc.assert_called_once_with(
            "request_design_revision",
            {
                "p_order_id": str(ORDER_ID),
                "p_delivery_id": DELIVERY_1,
                "p_user_id": str(CLIENT_ID),
                "p_comment": "Trocar a cor para azul",
            },
        )
        assert view.order["revisions_used"] == 1
        assert view.deliveries[0]["status"] == "revision_requested"
        service.notifications.notify_design_order_revision_requested.assert_awaited_once_with(
            "Ana Souza",
            "Acme",
            ORDER_ID,
            "Logo Premium",
            "Trocar a cor para azul",
            acting_user_id=str(CLIENT_ID),
        )

    @pytest.mark.asyncio
    async def test_blank_comment_rejected(
        self, service: DesignOrderService, mock_supabase: MagicMock, user: UserContext
    ) -> None:
        with pytest.raises(ValidationError):
            await service.request_revision(ORDER_ID, user, "   ")

        mock_supabase.table.assert_not_called()

    @pytest.mark.asyncio
    async def test_budget_exhausted(
        self, service: DesignOrderService, tables: dict, mock_supabase: MagicMock, user: UserContext
    ) -> None:
        tables["design_orders"] = make_query(make_order(revisions_used=2))
        tables["design_deliveries"] = make_query([make_delivery(DELIVERY_1, 1)])

        with pytest.raises(ConflictError) as exc_info:
            await service.request_revision(ORDER_ID, user, "Outra cor")

        assert "Limite de revisões" in exc_info.value.message
        mock_supabase.rpc.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejects_cancelled_order(
        self, service: DesignOrderService, tables: dict, mock_supabase: MagicMock, user: UserContext
    ) -> None:
        tables["design_orders"] = make_query(make_order(status="cancelled"))
        tables["design_deliveries"] = make_query([make_delivery(DELIVERY_1, 1)])

        with pytest.raises(ConflictError) as exc_info:
            await service.request_revision(ORDER_ID, user, "Outra cor")

        assert exc_info.value.message == "Pedido cancelado"
        mock_supabase.rpc.assert_not_called()

    @pytest.mark.asyncio
    async def test_maps_empty_comment_error(
        self, service: DesignOrderService, tables: dict, mock_supabase: MagicMock, user: UserContext
    ) -> None:
        tables["design_orders"] = make_query(make_order())
        tables["design_deliveries"] = make_query([make_delivery(DELIVERY_1, 1)])
        mock_supabase.rpc.return_value.execute.side_effect = rpc_error("PT422", "Descreva as correções desejadas")

        with pytest.raises(ValidationError):
            await service.request_revision(ORDER_ID, user, "x")


class TestCreateDownloadUrl:
    """Tests for create_download_url."""

    @pytest.mark.asyncio
    async def test_signs_stored_path(self, service: DesignOrderService, tables: dict) -> None:
        tables["design_orders"] = make_query(make_order())
        tables["design_delivery_files"] = make_query(
            {"id": str(FILE_ID), "file_name": "logo.png", "file_url": f"{ORDER_ID}/{DELIVERY_1}/logo.png"}
        )
        service.storage.create_signed_url.return_value = "https://test-project.supabase.co/storage/v1/sign/x?token=t"

        url, file = await service.create_download_url(ORDER_ID, FILE_ID, CLIENT_ID)

        assert url.endswith("token=t")
        assert file["file_name"] == "logo.png"
        service.storage.create_signed_url.assert_awaited_once_with(f"{ORDER_ID}/{DELIVERY_1}/logo.png")
        assert ("delivery.order_id", str(ORDER_ID)) in [
            c.args for c in tables["design_delivery_files"].eq.call_args_list
        ]

    @pytest.mark.asyncio
    async def test_order_of_another_client(self, service: DesignOrderService, tables: dict) -> None:
        tables["design_orders"] = make_query(None)

        with pytest.raises(NotFoundError):
            await service.create_download_url(ORDER_ID, FILE_ID, CLIENT_ID)

        service.storage.create_signed_url.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_file_not_in_order(self, service: DesignOrderService, tables: dict) -> None:
        tables["design_orders"] = make_query(make_order())
        tables["design_delivery_files"] = make_query(None)

        with pytest.raises(NotFoundError) as exc_info:
            await service.create_download_url(ORDER_ID, FILE_ID, CLIENT_ID)

        assert exc_info.value.message == "Arquivo não encontrado"


class TestCreateDelivery:
    """Tests for create_delivery."""

    @pytest.fixture(autouse=True)
    def fixed_delivery_id(self) -> Generator[None, None, None]:
        with patch("src.services.design_order_service.uuid4", return_value=UUID(DELIVERY_2)):
            yield

    @pytest.mark.asyncio
    async def test_creates_next_version(
        self, service: DesignOrderService, tables: dict, mock_supabase: MagicMock, admin: UserContext
    ) -> None:
        tables["design_orders"] = make_query(make_order(status="revision_requested"))
        tables["design_deliveries"] = make_query([make_delivery(DELIVERY_1, 1, status="revision_requested")])
        mock_supabase.rpc.return_value.execute.return_value = make_response({
            "id": DELIVERY_2,
            "order_id": str(ORDER_ID),
            "version_number": 2,
            "status": "pending_review",
            "files": [{"id": str(FILE_ID), "file_name": "logo v2.png", "file_type": "image/png"}],
        })

        delivery = await service.create_delivery(
            ORDER_ID,
            "Ajustes aplicados",
            [UploadedFile(file_name="logo v2.png", content=b"png", content_type="image/png")],
            admin,
        )

        service.storage.upload.assert_awaited_once_with(
            f"{ORDER_ID}/{DELIVERY_2}/logo v2.png", b"png", "image/png"
        )
        mock_supabase.rpc.assert_called_once_with(
            "create_design_delivery",
            {
                "p_order_id": str(ORDER_ID),
                "p_delivery_id": DELIVERY_2,
                "p_delivery_notes": "Ajustes aplicados",
                "p_files": [{
                    "file_name": "logo v2.png",
                    "file_url": f"{ORDER_ID}/{DELIVERY_2}/logo v2.png",
                    "file_type": "image/png",
                }],
            },
        )
        assert "design_delivery_files" not in tables
        service.storage.remove.assert_not_awaited()
        assert delivery["version_number"] == 2
        assert delivery["files"][0]["file_name"] == "logo v2.png"

        audit_args = service.audit.log_design_order_action.call_args
        assert audit_args.args[3] == "send"
        assert "Versão 2" in audit_args.args[4]
        service.notifications.notify_design_order_delivered.assert_awaited_once()
        assert service.notifications.notify_design_order_delivered.call_args.args[4] == 2

    @pytest.mark.asyncio
    async def test_first_delivery_from_pending(
        self, service: DesignOrderService, tables: dict, mock_supabase: MagicMock, admin: UserContext
    ) -> None:
        tables["design_orders"] = make_query(make_order(status="pending"))
        tables["design_deliveries"] = make_query([])
        mock_supabase.rpc.return_value.execute.return_value = make_response(
            {"id": DELIVERY_2, "order_id": str(ORDER_ID), "version_number": 1, "status": "pending_review", "files": []}
        )

        delivery = await service.create_delivery(
            ORDER_ID, None, [UploadedFile("a.pdf", b"%PDF", "application/pdf")], admin
        )

        assert delivery["version_number"] == 1
        audit_kwargs = service.audit.log_design_order_action.call_args.kwargs
        assert audit_kwargs["old_value"] == {"status": "pending"}
        assert audit_kwargs["new_value"]["status"] == "delivered"

    @pytest.mark.asyncio
    async def test_upload_failure_leaves_no_delivery(
        self, service: DesignOrderService, tables: dict, mock_supabase: MagicMock, admin: UserContext
    ) -> None:
        tables["design_orders"] = make_query(make_order(status="in_progress"))
        tables["design_deliveries"] = make_query([])
        service.storage.upload.side_effect = [None, StorageError("Erro ao enviar arquivo")]

        with pytest.raises(StorageError):
            await service.create_delivery(
                ORDER_ID,
                None,
                [UploadedFile("a.pdf", b"%PDF", "application/pdf"), UploadedFile("b.png", b"png", "image/png")],
                admin,
            )

        mock_supabase.rpc.assert_not_called()
        assert "design_delivery_files" not in tables
        service.storage.remove.assert_awaited_once_with([f"{ORDER_ID}/{DELIVERY_2}/a.pdf"])
        service.audit.log_design_order_action.assert_not_awaited()
        service.notifications.notify_design_order_delivered.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rpc_failure_removes_uploaded_files(
        self, service: DesignOrderService, tables: dict, mock_supabase: MagicMock, admin: UserContext
    ) -> None:
        tables["design_orders"] = make_query(make_order(status="in_progress"))
        tables["design_deliveries"] = make_query([])
        mock_supabase.rpc.return_value.execute.side_effect = rpc_error("PT409", "Pedido já finalizado")

        with pytest.raises(ConflictError) as exc_info:
            await service.create_delivery(
                ORDER_ID, None, [UploadedFile("a.pdf", b"%PDF", "application/pdf")], admin
            )

        assert exc_info.value.message == "Pedido já finalizado"
        service.storage.remove.assert_awaited_once_with([f"{ORDER_ID}/{DELIVERY_2}/a.pdf"])
        service.notifications.notify_design_order_delivered.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_rpc_failure_removes_uploaded_files(
        self, service: DesignOrderService, tables: dict, mock_supabase: MagicMock, admin: UserContext
    ) -> None:
        tables["design_orders"] = make_query(make_order(status="in_progress"))
        tables["design_deliveries"] = make_query([])
        mock_supabase.rpc.return_value.execute.side_effect = RuntimeError("connection lost")

        with pytest.raises(RuntimeError):
            await service.create_delivery(
                ORDER_ID, None, [UploadedFile("a.pdf", b"%PDF", "application/pdf")], admin
            )

        service.storage.remove.assert_awaited_once_with([f"{ORDER_ID}/{DELIVERY_2}/a.pdf"])

    @pytest.mark.asyncio
    async def test_requires_files(self, service: DesignOrderService, admin: UserContext) -> None:
        with pytest.raises(ValidationError):
            await service.create_delivery(ORDER_ID, None, [], admin)

    @pytest.mark.asyncio
    async def test_rejects_closed_order(
        self, service: DesignOrderService, tables: dict, mock_supabase: MagicMock, admin: UserContext
    ) -> None:
        tables["design_orders"] = make_query(make_order(status="approved"))
        tables["design_deliveries"] = make_query([make_delivery(DELIVERY_1, 1, status="approved")])

        with pytest.raises(InvalidTransitionError):
            await service.create_delivery(ORDER_ID, None, [UploadedFile("a.pdf", b"%PDF", "application/pdf")], admin)

        mock_supabase.rpc.assert_not_called()
        service.storage.upload.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejects_seventh_delivery(
        self, service: DesignOrderService, tables: dict, mock_supabase: MagicMock, admin: UserContext
    ) -> None:
        tables["design_orders"] = make_query(make_order())
        tables["design_deliveries"] = make_query([make_delivery(f"d{v}", v) for v in range(6, 0, -1)])

        with pytest.raises(ConflictError) as exc_info:
            await service.create_delivery(ORDER_ID, None, [UploadedFile("a.pdf", b"%PDF", "application/pdf")], admin)

        assert exc_info.value.message == "Pedido já finalizado"
        service.storage.upload.assert_not_awaited()


class TestUpdateStatus:
    """Tests for update_status."""

    @pytest.mark.asyncio
    async def test_applies_allowed_transition(
        self, service: DesignOrderService, tables: dict, admin: UserContext
    ) -> None:
        tables["design_orders"] = make_query(make_order(status="pending"), [make_order(status="in_progress")])

        order = await service.update_status(ORDER_ID, DesignOrderStatus.IN_PROGRESS, admin)

        assert order["status"] == "in_progress"
        tables["design_orders"].update.assert_called_once_with({"status": "in_progress"})
        assert ("status", "pending") in [c.args for c in tables["design_orders"].eq.call_args_list]
        audit_kwargs = service.audit.log_design_order_action.call_args.kwargs
        assert audit_kwargs["old_value"] == {"status": "pending"}
        assert audit_kwargs["new_value"] == {"status": "in_progress"}
        assert service.audit.log_design_order_action.call_args.args[3] == "status_change"

    @pytest.mark.asyncio
    async def test_rejects_invalid_transition(
        self, service: DesignOrderService, tables: dict, admin: UserContext
    ) -> None:
        tables["design_orders"] = make_query(make_order(status="completed"))

        with pytest.raises(InvalidTransitionError):
            await service.update_status(ORDER_ID, DesignOrderStatus.IN_PROGRESS, admin)

        tables["design_orders"].update.assert_not_called()
        service.audit.log_design_order_action.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_concurrent_change_is_conflict(
        self, service: DesignOrderService, tables: dict, admin: UserContext
    ) -> None:
        tables["design_orders"] = make_query(make_order(status="pending"), [])

        with pytest.raises(ConflictError):
            await service.update_status(ORDER_ID, DesignOrderStatus.CANCELLED, admin)

    @pytest.mark.asyncio
    async def test_missing_order(self, service: DesignOrderService, tables: dict, admin: UserContext) -> None:
        tables["design_orders"] = make_query(None)

        with pytest.raises(NotFoundError):
            await service.update_status(ORDER_ID, DesignOrderStatus.CANCELLED, admin)
