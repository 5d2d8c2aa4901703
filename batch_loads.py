from batchload import (
    RUN_ID,
    BatchLoads,
    PrintLogger,
    main,
    run_cli,
    validate_config,
)

__all__ = [
    "RUN_ID",
    "BatchLoads",
    "PrintLogger",
    "main",
    "run_cli",
    "validate_config",
]


if __name__ == "__main__":
    run_cli()
