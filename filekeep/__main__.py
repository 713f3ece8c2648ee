from filekeep.filekeep_main import main

main()
