from audiobrief.cli import main

main()
