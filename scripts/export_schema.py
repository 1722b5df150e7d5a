#!/usr/bin/env python3
import argparse
import json
import sys

from isomapper.exporter import HAS_YAML, Exporter


def main():
    parser = argparse.ArgumentParser(description="Export isomapper models as OpenAPI component schemas.")
    parser.add_argument("--format", choices=["json", "yaml"], default="json", help="Export format (default: json)")
    parser.add_argument("--output", help="Output file path (default: stdout)")

    args = parser.parse_args()

    try:
        if args.format == "yaml":
            if args.output:
                Exporter.export_yaml(args.output)
                print(f"Exported OpenAPI YAML to {args.output}")
            else:
                if not HAS_YAML:
                    raise ImportError("PyYAML is required for YAML export. Install it with 'pip install PyYAML'.")
                import yaml
                print(yaml.dump(Exporter.to_openapi(), sort_keys=False))
        else:
            if args.output:
                Exporter.export_json(args.output)
                print(f"Exported OpenAPI JSON to {args.output}")
            else:
                print(json.dumps(Exporter.to_openapi(), indent=2))
    except (ImportError, OSError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
