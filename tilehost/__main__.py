from tilehost.api.main import main

main()
