import argparse

from riders.loader import DEFAULT_CENTER, generate_mock_riders


def main():
    parser = argparse.ArgumentParser(description="Generate a CSV fleet of mock riders around a city center.")
    parser.add_argument("--output", default="mock_riders.csv")
    parser.add_argument("--count", type=int, default=100)
    parser.add_argument("--lat", type=float, default=DEFAULT_CENTER[0])
    parser.add_argument("--lon", type=float, default=DEFAULT_CENTER[1])
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args()

    df = generate_mock_riders(args.output, count=args.count, center=(args.lat, args.lon), seed=args.seed)
    print(f"Successfully generated {len(df)} mock riders into '{args.output}'.")

    print("\nStatus breakdown:")
    for rider_status, count in df["status"].value_counts().items():
        print(f"  {rider_status}: {count}")


if __name__ == "__main__":
    main()
