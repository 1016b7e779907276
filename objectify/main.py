"""Пайплайн преобразования параметров функции."""

import asyncio
import logging
import sys

from objectify.config import Config
from objectify.services.conversion import ConversionResult, ConversionService
from objectify.services.decision_service import provider_for_mode
from objectify.services.edit_service import FileSystemEditSink

logger = logging.getLogger(__name__)


class Pipeline:
    """Одна попытка преобразования по конфигурации."""

    def __init__(self, config: Config):
        self.config = config
        self.service = ConversionService(
            repo_path=config.repo_path,
            decisions=provider_for_mode(config.review_mode),
            edit_sink=None if config.dry_run else FileSystemEditSink(config.repo_path),
            config=config.conversion_config(),
            preview_delay=config.preview_delay,
            dry_run=config.dry_run,
        )

    async def run(self) -> ConversionResult:
        """Запустить преобразование и вывести итог."""
        logger.info("╔═══════════════════════════════════════════════════════════╗")
        logger.info("║          OBJECTIFY PARAMETERS                             ║")
        logger.info("╚═══════════════════════════════════════════════════════════╝")
        logger.info(f"Project: {self.config.repo_path}")
        logger.info(f"Target: {self.config.target_file}\n")

        if self.config.target_offset is not None:
            result = await self.service.convert(self.config.target_file, self.config.target_offset)
        else:
            result = await self.service.convert_at(
                self.config.target_file,
                self.config.target_line or 1,
                self.config.target_column,
            )

        self._log_summary(result)
        return result

    def _log_summary(self, result: ConversionResult) -> None:
        """Вывести итог попытки."""
        logger.info("───────────────────────────────────────────────────────────")
        if result.abort is not None:
            logger.info(f"✗ {result.abort.describe()}")
            for location in result.abort.locations:
                logger.info(f"  ↳ {location}")
        else:
            plan = result.plan
            logger.info(f"✓ {result.status}: {plan.target.name}{plan.signature_text}")
            files = result.files_modified if result.status == "converted" else plan.files
            for path in files:
                logger.info(f"  ↳ {path} ({len(plan.edits_by_file[path])} edits)")
        logger.info(
            f"Calls: {result.safe_count} safe | {result.accepted_count} accepted | "
            f"{result.rejected_count} rejected | {result.already_converted_count} already converted"
        )
        logger.info("───────────────────────────────────────────────────────────")


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    config = Config.model_validate(
        {}
    )  # https://github.com/pydantic/pydantic/issues/3753
    pipeline = Pipeline(config)
    result = asyncio.run(pipeline.run())
    return 0 if result.ok else 1


if __name__ == "__main__":
    sys.exit(main())
