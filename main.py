"""
Plan Vision - Main Entry Point
"""
import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

from planvision.config import settings  # noqa: E402


def setup_logging(level: str = None, log_file: Path = None):
    """Configure root logging from settings"""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
    )


def run_server(host: str = "0.0.0.0", port: int = 7001, reload: bool = False):
    """Run the API server"""
    import uvicorn

    print("\n" + "="*70)
    print("  Plan Vision Server")
    print("="*70)
    print(f"  Host: {host}")
    print(f"  Port: {port}")
    print(f"  API Docs: http://{host}:{port}/docs")
    print(f"  Auto-reload: {'enabled' if reload else 'disabled'}")
    print("="*70 + "\n")

    uvicorn.run(
        "planvision.api.server:app",
        host=host,
        port=port,
        reload=reload,
    )


def run_cli(input_path: str, output_dir: str, use_semantic: bool = True, focus: str = None, **overrides):
    """Analyze a drawing from the command line"""
    from planvision import AnalysisConfig, AnalysisEngine, PlanVisionError
    from planvision.api.server import default_classifier
    from planvision.export import ResultExporter
    from planvision.ingestion import DocumentLoader

    try:
        config = AnalysisConfig.from_settings(settings, **overrides)
        document = DocumentLoader().load(input_path)
        engine = AnalysisEngine(config, classifier=default_classifier() if use_semantic else None)
        result = engine.analyze_sync(document.image, prompt_context=focus)
    except (PlanVisionError, FileNotFoundError, ValueError) as e:
        print(f"Failed: {e}")
        sys.exit(1)

    meta = result.processing_metadata
    print(f"Detected {len(result.elements)} elements "
          f"(average confidence {result.average_confidence:.1f}%, quality {meta.quality_tier})")
    for warning in meta.warnings:
        print(f"  warning: {warning}")
    for element in result.elements[:20]:
        print(f"  - {element.id}: {element.element_type} [{element.category.value}] "
              f"bbox={element.bbox.to_list()} confidence={element.confidence:.2f}")

    exporter = ResultExporter(output_dir=output_dir)
    outputs = exporter.export_all(result, Path(input_path).stem)
    print("Output files:")
    for path in outputs.values():
        print(f"  - {path}")


def main():
    parser = argparse.ArgumentParser(
        description="Plan Vision - Detect structural elements in rasterized drawings"
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default from settings)")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Server command
    server_parser = subparsers.add_parser("server", help="Run API server")
    server_parser.add_argument("--host", default=settings.api_host, help="Host to bind to")
    server_parser.add_argument("--port", type=int, default=settings.api_port, help="Port to listen on")
    server_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    # Analyze command
    analyze_parser = subparsers.add_parser("analyze", help="Analyze a drawing")
    analyze_parser.add_argument("input", help="Input image (PNG, JPG, TIFF, BMP)")
    analyze_parser.add_argument("-o", "--output", default=str(settings.output_dir), help="Output directory")
    analyze_parser.add_argument("--threshold", type=int, help="Ink threshold (0-255)")
    analyze_parser.add_argument("--kernel-size", type=int, help="Odd structuring element size")
    analyze_parser.add_argument("--closing-iterations", type=int, help="Closing passes before opening")
    analyze_parser.add_argument("--min-size", type=int, help="Minimum component area in pixels")
    analyze_parser.add_argument("--max-size", type=int, help="Maximum component area in pixels")
    analyze_parser.add_argument("--focus", help="Focus hint for the semantic classifier")
    analyze_parser.add_argument("--no-semantic", action="store_true", help="Geometric detection only")

    args = parser.parse_args()
    setup_logging(args.log_level, settings.log_file)

    if args.command == "server":
        run_server(host=args.host, port=args.port, reload=args.reload)
    elif args.command == "analyze":
        run_cli(
            args.input,
            args.output,
            use_semantic=not args.no_semantic,
            focus=args.focus,
            threshold=args.threshold,
            kernel_size=args.kernel_size,
            closing_iterations=args.closing_iterations,
            min_element_size=args.min_size,
            max_element_size=args.max_size,
        )
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
