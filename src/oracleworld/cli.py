"""CLIエントリポイント。"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
from pathlib import Path
from typing import Any

from oracleworld.errors import OracleError
from oracleworld.types import GenerationResult


def _require_typer() -> Any:
    try:
        import typer
    except ImportError as exc:
        raise RuntimeError(
            "CLIには typer が必要です。pip install 'oracleworld[cli]' を実行してください。"
        ) from exc
    return typer


def _dump_result(result: GenerationResult, out: Path | None) -> str:
    """生成結果を出力する。

    音声バイト列は out へそのまま書き込み、それ以外はJSONで書き込む。

    Returns:
        標準出力へ表示する文字列。
    """

    if out is not None and isinstance(result.audio, bytes):
        out.write_bytes(result.audio)
        return str(out)
    text = json.dumps(result.to_payload(), ensure_ascii=False, indent=2, default=str)
    if out is None:
        return text
    suffix = out.suffix.lower()
    if suffix != ".json":
        raise ValueError("出力拡張子は .json のみ対応です（音声を除く）。")
    out.write_text(text, encoding="utf-8")
    return str(out)


def _dump_payload(payload: Any) -> str:
    if dataclasses.is_dataclass(payload):
        payload = dataclasses.asdict(payload)
    elif isinstance(payload, list):
        payload = [dataclasses.asdict(item) if dataclasses.is_dataclass(item) else item for item in payload]
    return json.dumps(payload, ensure_ascii=False, indent=2, default=str)


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


def app_entry() -> None:
    """CLIアプリを起動する。"""

    typer = _require_typer()
    from oracleworld import AsyncOracleClient

    app = typer.Typer(no_args_is_help=True)

    def run_generation(operation: str, provider: str, out: Path | None, **params: Any) -> None:
        async def _run() -> GenerationResult:
            async with AsyncOracleClient.from_env() as client:
                return await getattr(client, operation)(provider, **params)

        try:
            result = asyncio.run(_run())
        except OracleError as exc:
            typer.echo(f"{exc.kind.value}: {exc.message}", err=True)
            raise typer.Exit(code=1) from exc
        typer.echo(_dump_result(result, out))

    @app.command("text")
    def text_command(
        prompt: str = typer.Option(..., "--prompt"),
        provider: str = typer.Option("openrouter", "--provider"),
        model: str = typer.Option("gpt-3.5-turbo", "--model"),
        max_tokens: int | None = typer.Option(None, "--max-tokens"),
        system_prompt: str | None = typer.Option(None, "--system-prompt"),
        out: Path | None = typer.Option(None, "--out"),
        verbose: bool = typer.Option(False, "--verbose"),
    ) -> None:
        """テキストを生成する。"""

        _configure_logging(verbose)
        run_generation(
            "generate_text",
            provider,
            out,
            prompt=prompt,
            model=model,
            max_tokens=max_tokens,
            system_prompt=system_prompt,
        )

    @app.command("image")
    def image_command(
        prompt: str = typer.Option(..., "--prompt"),
        provider: str = typer.Option("openai", "--provider"),
        model: str = typer.Option("dall-e-3", "--model"),
        count: int = typer.Option(1, "--count"),
        width: int = typer.Option(1024, "--width"),
        height: int = typer.Option(1024, "--height"),
        out: Path | None = typer.Option(None, "--out"),
        verbose: bool = typer.Option(False, "--verbose"),
    ) -> None:
        """画像を生成する。"""

        _configure_logging(verbose)
        run_generation(
            "generate_image",
            provider,
            out,
            prompt=prompt,
            model=model,
            count=count,
            width=width,
            height=height,
        )

    @app.command("speech")
    def speech_command(
        text: str = typer.Option(..., "--text"),
        provider: str = typer.Option("openai", "--provider"),
        model: str = typer.Option("tts-1", "--model"),
        voice: str = typer.Option("alloy", "--voice"),
        out: Path | None = typer.Option(None, "--out"),
        verbose: bool = typer.Option(False, "--verbose"),
    ) -> None:
        """音声を合成する。"""

        _configure_logging(verbose)
        run_generation("generate_speech", provider, out, text=text, model=model, voice=voice)

    @app.command("estimate")
    def estimate_command(
        provider: str = typer.Option(..., "--provider"),
        model: str = typer.Option(..., "--model"),
        type: str | None = typer.Option(None, "--type"),
        count: int | None = typer.Option(None, "--count"),
        prompt: str | None = typer.Option(None, "--prompt"),
        max_tokens: int | None = typer.Option(None, "--max-tokens"),
        text: str | None = typer.Option(None, "--text"),
    ) -> None:
        """費用を見積もる。"""

        from oracleworld.cost import CostEstimator

        estimate = CostEstimator.estimate(
            provider,
            model,
            type,
            count=count,
            prompt=prompt,
            max_tokens=max_tokens,
            text=text,
        )
        typer.echo(_dump_payload(estimate))

    @app.command("providers")
    def providers_command() -> None:
        """認証情報が設定されたプロバイダを表示する。"""

        from oracleworld.client import api_keys_from_env
        from oracleworld.services.registry import available_providers

        typer.echo(_dump_payload(available_providers(api_keys_from_env())))

    app()


if __name__ == "__main__":
    app_entry()
