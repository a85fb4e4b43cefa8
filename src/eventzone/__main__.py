from eventzone.cli import main

main()
