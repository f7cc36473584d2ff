from gitswitch.cli import main

main()
