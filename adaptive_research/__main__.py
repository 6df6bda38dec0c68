from adaptive_research.cli import main

main()
