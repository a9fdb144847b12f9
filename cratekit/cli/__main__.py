from cratekit.cli import main

main()
