from unittest.mock import patch


def test_cli_main_invokes_uvicorn_run():
    with patch("uvicorn.run") as mock_run, \
            patch("docgen.cli.main.configure_logging"), \
            patch("docgen.cli.main.configure_tracing"):
        # import inside test to ensure patch target is available
        from docgen.cli import main as cli_main

        cli_main.main()

    mock_run.assert_called_once()
    assert mock_run.call_args.args[0] == "docgen.api.main:app"


def test_cli_worker_runs_worker_main():
    with patch("docgen.worker.main") as mock_worker:
        from docgen.cli import main as cli_main

        cli_main.worker()

    mock_worker.assert_called_once()
