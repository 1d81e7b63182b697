"""
Tests for the storefront-admin CLI.

Database, Temporal and use case collaborators are mocked; these tests
cover argument parsing, user feedback and exit codes.
"""

from unittest.mock import AsyncMock, MagicMock, patch

from click.testing import CliRunner

from storefront.cli.admin import cli
from storefront.domain import SweepResult


class TestInitDb:
    def test_applies_schema(self) -> None:
        conn = MagicMock()
        conn.execute = AsyncMock()
        conn.close = AsyncMock()

        with patch(
            "storefront.cli.admin.asyncpg.connect",
            AsyncMock(return_value=conn),
        ) as mock_connect:
            result = CliRunner().invoke(
                cli, ["--database-url", "postgresql://db/test", "init-db"]
            )

        assert result.exit_code == 0, result.output
        assert "Schema applied." in result.output
        mock_connect.assert_awaited_once_with("postgresql://db/test")
        assert "CREATE TABLE" in conn.execute.await_args.args[0]
        conn.close.assert_awaited_once()

    def test_reports_connection_failure(self) -> None:
        with patch(
            "storefront.cli.admin.asyncpg.connect",
            AsyncMock(side_effect=OSError("connection refused")),
        ):
            result = CliRunner().invoke(cli, ["init-db"])

        assert result.exit_code == 1
        assert "Schema setup failed: connection refused" in result.output


class TestSweepReservations:
    def test_prints_summary(self) -> None:
        pool = MagicMock()
        pool.close = AsyncMock()

        with patch(
            "storefront.cli.admin.asyncpg.create_pool",
            AsyncMock(return_value=pool),
        ), patch("storefront.cli.admin.PostgreSQLOrderRepository"), patch(
            "storefront.cli.admin.ReservationSweeper"
        ) as mock_sweeper_class:
            mock_sweeper_class.return_value.sweep = AsyncMock(
                return_value=SweepResult(examined=4, released=3, conflicts=1)
            )
            result = CliRunner().invoke(cli, ["sweep-reservations"])

        assert result.exit_code == 0, result.output
        assert "Examined 4, released 3, conflicts 1" in result.output
        pool.close.assert_awaited_once()


class TestRenderInvoice:
    def test_starts_workflow_and_waits(self) -> None:
        handle = MagicMock()
        handle.id = "invoice-render-inv-1"
        handle.result = AsyncMock(return_value="memory://documents/x.html")
        client = MagicMock()
        client.start_workflow = AsyncMock(return_value=handle)

        with patch(
            "storefront.cli.admin.Client.connect",
            AsyncMock(return_value=client),
        ) as mock_connect:
            result = CliRunner().invoke(
                cli,
                [
                    "render-invoice",
                    "inv-1",
                    "--wait",
                    "--temporal-address",
                    "localhost:7233",
                ],
                env={"INVOICE_FOLDER": "archive"},
            )

        assert result.exit_code == 0, result.output
        assert "Workflow ID: invoice-render-inv-1" in result.output
        assert "Document stored at memory://documents/x.html" in result.output
        assert mock_connect.await_args.args[0] == "localhost:7233"
        call = client.start_workflow.await_args
        assert call.args[0] == "InvoiceRenderWorkflow"
        assert call.kwargs["args"] == ["inv-1", "archive"]
        assert call.kwargs["id"] == "invoice-render-inv-1"

    def test_reports_temporal_failure(self) -> None:
        with patch(
            "storefront.cli.admin.Client.connect",
            AsyncMock(side_effect=RuntimeError("no server")),
        ):
            result = CliRunner().invoke(cli, ["render-invoice", "inv-1"])

        assert result.exit_code == 1
        assert "Render failed: no server" in result.output
