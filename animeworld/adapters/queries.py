"""
AniList GraphQL queries.

API Documentation: https://anilist.gitbook.io/anilist-apiv2-docs/
"""

# Fields shared by every list view (cards, search results, schedules)
MEDIA_FIELDS = """
fragment mediaFields on Media {
    id
    type
    title {
        romaji
        english
        native
        userPreferred
    }
    coverImage {
        extraLarge
        large
        medium
        color
    }
    bannerImage
    description(asHtml: false)
    format
    status
    episodes
    chapters
    volumes
    genres
    averageScore
    seasonYear
    startDate { year month day }
    countryOfOrigin
    isAdult
    nextAiringEpisode {
        episode
        timeUntilAiring
    }
}
"""

PAGE_INFO_FIELDS = """
pageInfo {
    total
    currentPage
    lastPage
    hasNextPage
}
"""

TRENDING_QUERY = """
query ($perPage: Int, $type: MediaType, $status: MediaStatus) {
    Page(page: 1, perPage: $perPage) {
        media(type: $type, sort: TRENDING_DESC, status: $status) {
            ...mediaFields
        }
    }
}
""" + MEDIA_FIELDS

SEARCH_QUERY = """
query ($search: String, $page: Int, $perPage: Int, $type: MediaType) {
    Page(page: $page, perPage: $perPage) {
        %s
        media(search: $search, type: $type) {
            ...mediaFields
        }
    }
}
""" % PAGE_INFO_FIELDS + MEDIA_FIELDS

TITLE_LOOKUP_QUERY = """
query ($search: String, $perPage: Int, $type: MediaType) {
    Page(page: 1, perPage: $perPage) {
        media(search: $search, type: $type) {
            id
            title {
                romaji
                english
                native
                userPreferred
            }
            synonyms
        }
    }
}
"""

DETAIL_QUERY = """
query ($id: Int) {
    Media(id: $id) {
        ...mediaFields
        duration
        popularity
        favourites
        meanScore
        season
        source
        siteUrl
        endDate { year month day }
        studios {
            edges {
                isMain
                node {
                    name
                }
            }
        }
        staff(perPage: 10, sort: RELEVANCE) {
            edges {
                role
                node {
                    id
                    name { full native }
                    image { large }
                }
            }
        }
        characters(perPage: 12, sort: [ROLE, RELEVANCE]) {
            edges {
                role
                node {
                    id
                    name { full native }
                    image { large }
                }
                voiceActors(language: JAPANESE) {
                    id
                    name { full native }
                }
            }
        }
        trailer {
            id
            site
            thumbnail
        }
        relations {
            edges {
                relationType
                node {
                    id
                    type
                    title { romaji english }
                }
            }
        }
        recommendations(perPage: 12, sort: RATING_DESC) {
            edges {
                node {
                    mediaRecommendation {
                        ...mediaFields
                    }
                }
            }
        }
    }
}
""" + MEDIA_FIELDS

RECOMMENDATIONS_QUERY = """
query ($id: Int, $perPage: Int) {
    Media(id: $id) {
        id
        recommendations(perPage: $perPage, sort: RATING_DESC) {
            edges {
                node {
                    mediaRecommendation {
                        ...mediaFields
                    }
                }
            }
        }
    }
}
""" + MEDIA_FIELDS

UPCOMING_QUERY = """
query ($page: Int, $perPage: Int, $startDateGreater: FuzzyDateInt) {
    Page(page: $page, perPage: $perPage) {
        media(sort: START_DATE, startDate_greater: $startDateGreater, type: ANIME) {
            ...mediaFields
            studios {
                nodes {
                    name
                }
            }
        }
    }
}
""" + MEDIA_FIELDS

RECENT_QUERY = """
query ($perPage: Int, $type: MediaType) {
    Page(page: 1, perPage: $perPage) {
        media(type: $type, sort: START_DATE_DESC, isAdult: false) {
            ...mediaFields
        }
    }
}
""" + MEDIA_FIELDS

SCHEDULE_QUERY = """
query ($page: Int, $perPage: Int, $airingAtGreater: Int) {
    Page(page: $page, perPage: $perPage) {
        %s
        airingSchedules(sort: TIME, airingAt_greater: $airingAtGreater) {
            id
            airingAt
            episode
            media {
                ...mediaFields
            }
        }
    }
}
""" % PAGE_INFO_FIELDS + MEDIA_FIELDS

FILTER_MEDIA_SELECTION = """
{
    ...mediaFields
}
"""
