from gator.cli import main

main()
