from .server.http import main

main()
